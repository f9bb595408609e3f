# FILE: voice_habits/__main__.py
"""
Console runner: python -m voice_habits checkin|goals --user USER_ID

Answers are typed on stdin in place of a microphone; prompts are spoken
through the configured speech providers.
"""
import argparse
import asyncio
import logging
import sys

from voice_habits.config import get_settings
from voice_habits.errors import VoiceHabitsError, describe_error
from voice_habits.providers.registry import build_speech_dispatcher, load_tts_config
from voice_habits.services.habit_api import HabitApiClient, StaticAuth
from voice_habits.services.telemetry import prune_old_files
from voice_habits.sessions.checkin import CheckInSession
from voice_habits.sessions.goals import GoalsSession
from voice_habits.speech.listener import ConsoleRecognizer, SpeechInputListener

logger = logging.getLogger(__name__)


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="voice_habits", description="Voice habit check-in")
    parser.add_argument("command", choices=["checkin", "goals"], help="Session to run")
    parser.add_argument("--user", required=True, help="User id to check in as")
    parser.add_argument("--token", default=None, help="Bearer token for the habit API")
    return parser.parse_args(argv)


def _print_status(message: str) -> None:
    print(message)


def _print_error(report) -> None:
    print(f"! {report.message}", file=sys.stderr)


async def _run_checkin(api, speech, listener, auth, settings) -> int:
    session = CheckInSession(
        api, speech, listener, auth,
        settings=settings,
        on_status=_print_status,
        on_error=_print_error,
    )
    result = await session.start()
    if result is None:
        return 1
    if not result.success:
        print(f"Check-in failed: {result.technical_details}", file=sys.stderr)
        return 1
    print(f"Saved: {result.responses}")
    return 0


async def _run_goals(api, speech, listener, auth, settings) -> int:
    session = GoalsSession(
        api, listener, auth,
        speech=speech,
        settings=settings,
        on_status=_print_status,
        on_error=_print_error,
    )
    print("Say your goals, one per line. Enter a blank line when you are done.")
    await session.start()
    # The console recognizer ends by itself on a blank line
    while listener.is_listening:
        await asyncio.sleep(0.1)

    draft = await session.stop()
    if not draft.goals:
        return 1

    while True:
        for number, goal in enumerate(draft.goals, start=1):
            print(f"  {number}. {goal}")
        choice = (await asyncio.to_thread(input, "Enter to submit, a number to edit, a to add, q to cancel: ")).strip()
        if not choice:
            break
        if choice.lower() == "q":
            await session.cancel()
            return 1
        if choice.lower() == "a":
            text = await asyncio.to_thread(input, "New goal: ")
            try:
                session.add_goal(text)
            except VoiceHabitsError as e:
                print(e.user_message)
            continue
        if choice.isdigit():
            text = await asyncio.to_thread(input, "New text (blank removes the goal): ")
            try:
                session.edit_goal(int(choice) - 1, text)
            except VoiceHabitsError as e:
                print(e.user_message)
            if not draft.goals:
                return 1

    result = await session.confirm()
    print(f"Goals submitted for the week of {session.current_week_start().isoformat()}")
    if result.habit_stack is not None:
        for habit in result.habit_stack.habits:
            print(f"  {habit.key}: {habit.text}")
    return 0


async def _main(args: argparse.Namespace) -> int:
    settings = get_settings()
    prune_old_files()

    auth = StaticAuth(user_id=args.user, token=args.token)
    async with HabitApiClient(auth, settings=settings) as api:
        tts_config = await load_tts_config(api)
        speech = build_speech_dispatcher(tts_config, settings=settings)
        listener = SpeechInputListener(ConsoleRecognizer(), lang=settings.speech_lang)
        try:
            if args.command == "checkin":
                return await _run_checkin(api, speech, listener, auth, settings)
            return await _run_goals(api, speech, listener, auth, settings)
        except VoiceHabitsError as e:
            report = describe_error(e)
            print(f"{report.message} ({report.technical_details})", file=sys.stderr)
            return 1
        finally:
            speech.stop()


def main(argv=None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    return asyncio.run(_main(args))


if __name__ == "__main__":
    sys.exit(main())
