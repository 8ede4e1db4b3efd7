"""Interactive CLI application."""
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from exam_practice.cache import LocalCache
from exam_practice.choices import split_image_text
from exam_practice.config import settings
from exam_practice.dashboard import (
    calculate_accuracy, get_performance_color, get_performance_level, get_user_statistics,
)
from exam_practice.db import DEFAULT_DB_PATH, init_db
from exam_practice.importer import ImportFormatError, import_question_bank
from exam_practice.logging_setup import configure_logging
from exam_practice.mock import MockExamSession, clamp_question_count
from exam_practice.models import SyncStatus, TestInfo
from exam_practice.paged import PracticeSession, StudySession
from exam_practice.progress import SqliteProgressStore
from exam_practice.questions import get_all_questions, get_tests
from exam_practice.review import build_session_review, choice_mark, get_mock_history, get_mock_result_detail
from exam_practice.seed import is_seeded, seed_all
from exam_practice.session import RandomPracticeSession
from exam_practice.sync import ProgressSynchronizer
from exam_practice.timing import format_clock, format_duration, format_time_limit

console = Console()

EXIT_WORDS = ("q", "menu")

MARK_STYLES = {
    "correct": ("green", "✓"),
    "incorrect": ("red", "✗"),
    "missed": ("yellow", "← correct answer"),
}

SYNC_LABELS = {
    SyncStatus.IDLE: "",
    SyncStatus.SAVING: "[dim]Saving...[/dim]",
    SyncStatus.SAVED: "[green]Progress saved[/green]",
    SyncStatus.FAILED: "[red]Could not save progress (kept locally)[/red]",
}


class SessionExitRequested(Exception):
    """Raised when the user types 'q' or 'menu' during a session."""


def session_prompt(prompt: str, choices: list[str] | None = None, default: str | None = None) -> str:
    """Prompt.ask that also accepts 'q'/'menu' to leave the session."""
    kwargs = {}
    if choices:
        kwargs["choices"] = list(choices) + [w for w in EXIT_WORDS if w not in choices]
        kwargs["show_choices"] = False
    if default is not None:
        kwargs["default"] = default
    answer = Prompt.ask(prompt, **kwargs)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


def session_int_prompt(prompt: str, choices: list[str] | None = None, default: int | None = None) -> int:
    while True:
        answer = session_prompt(prompt, choices=choices, default=None if default is None else str(default))
        try:
            return int(answer.strip())
        except ValueError:
            console.print("[red]Please enter a number.[/red]")


def show_welcome():
    console.print(Panel(
        "[bold]Certification Exam Practice[/bold]\n[dim]Random practice, timed mock exams and study mode[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("tests", "List available tests"),
        ("random", "Random practice with instant feedback"),
        ("mock", "Timed mock exam"),
        ("practice", "Page through a test with instant feedback"),
        ("study", "Study mode with saved progress"),
        ("history", "Past mock exam results"),
        ("stats", "Your statistics"),
        ("import", "Import a question bank (JSON/YAML)"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<10}[/cyan] {desc}")
    console.print("[dim]During a session type 'q' or 'menu' to return here.[/dim]")


# -- rendering ----------------------------------------------------------


def format_question_text(text: str, images=()) -> str:
    parts = []
    for kind, value in split_image_text(text, images):
        if kind == "text":
            parts.append(escape(value))
        elif value:
            parts.append(f"[blue][image: {escape(value)}][/blue]")
        else:
            parts.append("[dim][image unavailable][/dim]")
    return "".join(parts).strip()


def show_question(session, index: int) -> None:
    question = session.questions[index]
    selected = session.selected_labels(index)
    revealed = session.reveal(index)
    lines = [format_question_text(question.text, question.question_images), ""]
    choices = session.choices_for(index)
    if not choices:
        lines.append("[yellow]This question has no answer choices to pick from.[/yellow]")
    for choice in choices:
        pointer = "[bold]>[/bold]" if choice.label in selected else " "
        line = f"{pointer} [cyan]{choice.label})[/cyan] {escape(choice.text)}"
        mark = choice_mark(choice.label, selected, question.correct_labels) if revealed else None
        if mark:
            color, symbol = MARK_STYLES[mark]
            line += f"  [{color}]{symbol}[/{color}]"
        lines.append(line)
    if question.is_multiple_answer:
        lines.append(f"\n[dim]Select {len(question.correct_labels)} answers.[/dim]")
    if revealed and session.is_answered(index):
        answer = session.answer_for(index)
        if answer.is_correct:
            lines.append("\n[green]Correct![/green]")
        else:
            lines.append(f"\n[red]Incorrect.[/red] Answer: [green]{question.correct_answer}[/green]")

    title = f"Question {index + 1}/{session.total}"
    if index in session.flagged:
        title += " [yellow]flagged[/yellow]"
    console.print(Panel("\n".join(lines), title=title, border_style="cyan"))


def show_stats(session) -> None:
    stats = session.stats()
    if stats.time_is_remaining:
        line = (f"Answered [bold]{stats.answered}[/bold]/{stats.total}  |  "
                f"Flagged [bold]{stats.flagged}[/bold]  |  Skipped [bold]{stats.skipped}[/bold]  |  "
                f"Time left [bold]{format_clock(stats.time_seconds)}[/bold]")
    else:
        line = (f"Answered [bold]{stats.answered}[/bold]/{stats.total}  |  "
                f"Correct [bold]{stats.correct}[/bold]  |  Accuracy [bold]{stats.accuracy_percent}%[/bold]  |  "
                f"Time [bold]{format_clock(stats.time_seconds)}[/bold]")
    sync = SYNC_LABELS.get(session.sync_status, "")
    console.print(f"  {line}" + (f"  |  {sync}" if sync else ""))


def show_page(session) -> None:
    pager = " ".join(
        f"[bold reverse] {p} [/bold reverse]" if p == session.page else f" {p} "
        for p in session.visible_pages()
    )
    console.print(f"\n[bold]Page {session.page} of {session.page_count}[/bold]   {pager}")
    for index, _ in session.page_questions():
        show_question(session, index)
    show_stats(session)


def show_review(session) -> None:
    for row in build_session_review(session):
        question = row["question"]
        color = {"correct": "green", "incorrect": "red", "skipped": "yellow"}[row["status"]]
        lines = [format_question_text(question.text, question.question_images), ""]
        for choice, mark in row["choices"]:
            line = f"  [cyan]{choice.label})[/cyan] {escape(choice.text)}"
            if mark:
                mark_color, symbol = MARK_STYLES[mark]
                line += f"  [{mark_color}]{symbol}[/{mark_color}]"
            lines.append(line)
        lines.append(f"\nYour answer: {row['user_answer']}   Correct: [green]{question.correct_answer}[/green]")
        title = f"Q{row['index'] + 1} [{color}]{row['status']}[/{color}]"
        if row["flagged"]:
            title += " [yellow]flagged[/yellow]"
        console.print(Panel("\n".join(lines), title=title, border_style=color))


def show_results(session, test: TestInfo | None = None) -> None:
    stats = session.stats()
    table = Table(title="Session Results")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    if session.mode == "mock":
        percentage = calculate_accuracy(stats.correct, stats.total)
        table.add_row("Score", f"{stats.correct}/{stats.total} ({percentage}%)")
        table.add_row("Skipped", str(stats.total - stats.answered))
        table.add_row("Time", format_duration(session.elapsed_seconds()))
        if test is not None and test.passing_score:
            passed = percentage >= test.passing_score
            verdict = "[green]PASSED[/green]" if passed else "[red]NOT PASSED[/red]"
            table.add_row("Result", f"{verdict} (passing {test.passing_score}%)")
    else:
        percentage = stats.accuracy_percent
        table.add_row("Answered", f"{stats.answered}/{stats.total}")
        table.add_row("Correct", str(stats.correct))
        table.add_row("Accuracy", f"{percentage}%")
        table.add_row("Time", format_duration(session.elapsed_seconds()))
    color = get_performance_color(percentage)
    table.add_row("Performance", f"[{color}]{get_performance_level(percentage)}[/{color}]")
    console.print(table)


def wait_for_sync(session, timeout: float = 10.0) -> None:
    if session.synchronizer is None:
        return
    if not session.synchronizer.flush(timeout=timeout):
        console.print("[yellow]Still saving in the background.[/yellow]")
        return
    label = SYNC_LABELS.get(session.sync_status)
    if label:
        console.print(label)


# -- answering ----------------------------------------------------------


def apply_answer(session, index: int, raw: str) -> bool:
    """Select the labels typed by the user; multiple-answer input like 'AC' is submitted at once."""
    question = session.questions[index]
    offered = [choice.label for choice in session.choices_for(index)]
    labels = [label for label in dict.fromkeys(raw.strip().upper()) if label in offered]
    if not labels:
        console.print(f"[red]Choose from {', '.join(offered)}.[/red]")
        return False
    if question.is_multiple_answer:
        for label in labels:
            session.select(label, index)
        return session.submit(index) is not None
    return session.select(labels[0], index) is not None


def ask_answer(session, index: int) -> bool:
    question = session.questions[index]
    hint = f" (choose {len(question.correct_labels)}, e.g. AC)" if question.is_multiple_answer else ""
    return apply_answer(session, index, session_prompt(f"Your answer{hint}"))


# -- session runners ----------------------------------------------------


def run_random_session(session) -> None:
    """Drive a random practice session until it completes. Raises SessionExitRequested on 'q'."""
    session.start()
    while session.is_in_progress:
        index = session.cursor
        show_question(session, index)
        if not session.is_answered(index) and session.choices_for(index):
            if not ask_answer(session, index):
                continue
            show_question(session, index)
        show_stats(session)
        last = index == session.total - 1
        action = session_prompt(
            "[n]ext, [p]revious or [f]inish", choices=["n", "p", "f"], default="f" if last else "n",
        )
        if action == "f" or (action == "n" and last):
            session.complete()
        elif action == "n":
            session.next()
        else:
            session.previous()


MOCK_COMMANDS = {
    "n": "n", "next": "n",
    "p": "p", "prev": "p", "previous": "p",
    "g": "g", "goto": "g",
    "m": "m", "mark": "m",
    "f": "f", "finish": "f",
}


def is_choice_input(session, index: int, raw: str) -> bool:
    """True when ``raw`` only names choices offered for an open question at ``index``."""
    if session.is_answered(index):
        return False
    offered = {choice.label for choice in session.choices_for(index)}
    labels = raw.strip().upper()
    return bool(labels) and bool(offered) and set(labels) <= offered


def run_mock_session(session) -> None:
    session.start()
    console.print(Panel(
        f"{session.total} questions in {format_time_limit(session.time_limit)}.\n"
        "[dim]Answers are scored when you finish or time runs out.[/dim]",
        title="Mock Exam", border_style="magenta",
    ))
    while session.is_in_progress:
        index = session.cursor
        show_question(session, index)
        show_stats(session)
        raw = session_prompt(
            "Answer, or [n]ext [p]revious [g]o to [m]ark [f]inish (type the whole word when it is also a choice)",
            default="n",
        )
        if not session.is_in_progress:
            break
        if is_choice_input(session, index, raw):
            apply_answer(session, index, raw)
            continue
        parts = raw.strip().split()
        command = MOCK_COMMANDS.get(parts[0].lower(), "") if parts else "n"
        if command == "n":
            if session.next() is None:
                console.print("[dim]This is the last question; type 'finish' when you are done.[/dim]")
        elif command == "p":
            session.previous()
        elif command == "g":
            number = int(parts[1]) if len(parts) > 1 and parts[1].isdigit() else session_int_prompt("Go to question")
            session.go_to(number - 1)
        elif command == "m":
            session.toggle_flag()
        elif command == "f":
            unanswered = session.total - session.stats().answered
            if unanswered:
                confirm = session_prompt(f"{unanswered} questions unanswered. Finish anyway?", choices=["y", "n"], default="n")
                if confirm != "y":
                    continue
            session.complete()
        elif session.is_answered(index):
            console.print("[dim]This question is already answered.[/dim]")
        else:
            console.print("[red]Unknown command or choice.[/red]")
    if session.time_remaining == 0:
        console.print("[bold red]Time is up![/bold red]")


def run_paged_session(session) -> None:
    session.start()
    while session.is_in_progress:
        show_page(session)
        raw = session_prompt(
            "Answer as '<number> <choice>', or [n]ext / [p]revious page, [g]o to page, [f]inish", default="n",
        )
        parts = raw.strip().split()
        command = parts[0].lower() if parts else "n"
        if command == "n":
            if session.next_page() is None:
                console.print("[dim]This is the last page; type 'f' to finish.[/dim]")
        elif command == "p":
            session.previous_page()
        elif command == "g":
            page = int(parts[1]) if len(parts) > 1 and parts[1].isdigit() else session_int_prompt("Page")
            session.go_to_page(page)
        elif command == "f":
            session.complete()
        elif command.isdigit() and len(parts) > 1:
            index = int(command) - 1
            if index not in session.page_indices():
                console.print("[red]That question is not on this page.[/red]")
            elif session.is_answered(index):
                console.print("[dim]Already answered.[/dim]")
            else:
                apply_answer(session, index, parts[1])
        else:
            console.print("[red]Unknown input.[/red]")


def play(session, runner, test: TestInfo | None = None) -> bool:
    """Run a session; 'q' abandons it and keeps whatever was already saved."""
    try:
        runner(session)
    except SessionExitRequested:
        session.close()
        console.print("[dim]Session closed. Saved progress is kept.[/dim]")
        return False
    show_results(session, test)
    wait_for_sync(session)
    if session_prompt("Review your answers?", choices=["y", "n"], default="n") == "y":
        session.show_details()
        show_review(session)
        session.back()
    return True


# -- commands -----------------------------------------------------------


def show_tests(tests: list[TestInfo]) -> None:
    table = Table(title="Available Tests")
    table.add_column("#", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Category")
    table.add_column("Difficulty")
    table.add_column("Questions", justify="right")
    table.add_column("Passing", justify="right")
    for i, test in enumerate(tests, 1):
        table.add_row(
            str(i), test.name, test.category, test.difficulty,
            str(test.total_questions), f"{test.passing_score}%" if test.passing_score else "-",
        )
    console.print(table)


def choose_test(db_path: str) -> TestInfo | None:
    tests = get_tests(db_path)
    if not tests:
        console.print("[yellow]No tests available. Use 'import' to add a question bank.[/yellow]")
        return None
    show_tests(tests)
    number = session_int_prompt("Select test", choices=[str(i) for i in range(1, len(tests) + 1)])
    return tests[number - 1]


def _load_questions(db_path: str, test: TestInfo) -> list:
    questions = get_all_questions(db_path, test.id)
    if not questions:
        console.print("[yellow]This test has no usable questions.[/yellow]")
    return questions


def cmd_tests(db_path: str):
    tests = get_tests(db_path)
    if not tests:
        console.print("[yellow]No tests available.[/yellow]")
        return
    show_tests(tests)


def cmd_random(db_path: str, synchronizer: ProgressSynchronizer):
    test = choose_test(db_path)
    if test is None:
        return
    questions = _load_questions(db_path, test)
    if questions:
        play(RandomPracticeSession(questions, test.id), run_random_session, test)


def cmd_mock(db_path: str, synchronizer: ProgressSynchronizer):
    test = choose_test(db_path)
    if test is None:
        return
    questions = _load_questions(db_path, test)
    if not questions:
        return
    default = clamp_question_count(None, len(questions))
    count = session_int_prompt(f"Number of questions (1-{min(settings.MOCK_MAX_QUESTIONS, len(questions))})", default=default)
    session = MockExamSession(
        questions, test.id, count, cache=synchronizer.cache, synchronizer=synchronizer,
    )
    play(session, run_mock_session, test)


def cmd_practice(db_path: str, synchronizer: ProgressSynchronizer):
    test = choose_test(db_path)
    if test is None:
        return
    questions = _load_questions(db_path, test)
    if questions:
        play(PracticeSession(questions, test.id), run_paged_session, test)


def cmd_study(db_path: str, synchronizer: ProgressSynchronizer):
    test = choose_test(db_path)
    if test is None:
        return
    questions = _load_questions(db_path, test)
    if not questions:
        return
    session = StudySession(questions, test.id, synchronizer=synchronizer)
    restored = session.stats().answered
    if restored:
        console.print(f"[green]Resuming: {restored} of {session.total} questions already answered.[/green]")
    play(session, run_paged_session, test)


def cmd_history(db_path: str, user_id: int):
    history = get_mock_history(db_path, user_id)
    if not history["mock_tests"]:
        console.print("[yellow]No mock exams taken yet.[/yellow]")
        return
    table = Table(title="Mock Exam History")
    table.add_column("ID", justify="right")
    table.add_column("Test", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Time", justify="right")
    table.add_column("Result")
    table.add_column("Completed")
    for r in history["mock_tests"]:
        result = "[green]Passed[/green]" if r["passed"] else "[red]Not passed[/red]"
        table.add_row(
            str(r["id"]), r["test_name"], f"{r['score']}/{r['total_questions']} ({r['percentage']}%)",
            format_duration(r["time_spent"]), result, (r["completed_at"] or "")[:16].replace("T", " "),
        )
    console.print(table)
    choice = Prompt.ask("Result ID to review (Enter to go back)", default="").strip()
    if not choice.isdigit():
        return
    detail = get_mock_result_detail(db_path, user_id, int(choice))
    if detail is None:
        console.print(f"[red]No mock exam result {choice}.[/red]")
        return
    for i, a in enumerate(detail["answers"], 1):
        color = "green" if a["is_correct"] else "red"
        lines = [format_question_text(a["question_text"], a["question_images"]), ""]
        for label, text in a["choices"].items():
            if not text or not text.strip():
                continue
            line = f"  [cyan]{label})[/cyan] {escape(text)}"
            mark = a["marks"].get(label)
            if mark:
                mark_color, symbol = MARK_STYLES[mark]
                line += f"  [{mark_color}]{symbol}[/{mark_color}]"
            lines.append(line)
        lines.append(f"\nYour answer: {a['user_answer']}   Correct: [green]{a['correct_answer']}[/green]")
        console.print(Panel("\n".join(lines), title=f"Q{i}", border_style=color))


def cmd_stats(db_path: str, user_id: int):
    stats = get_user_statistics(db_path, user_id)
    study = stats["overall"]["study"]
    mock = stats["overall"]["mock_tests"]
    color = get_performance_color(study["accuracy"])
    console.print(Panel(
        f"Study: [bold]{study['total_studied']}[/bold] answered, "
        f"[{color}]{study['accuracy']}% ({get_performance_level(study['accuracy'])})[/{color}], "
        f"avg {format_duration(study['average_time'])} per question\n"
        f"Mock exams: [bold]{mock['total_tests']}[/bold] taken, "
        f"average {mock['average_percentage']}%, avg time {format_duration(mock['average_time_spent'])}",
        title="Your Statistics", border_style="blue",
    ))
    if stats["study_by_test"]:
        table = Table(title="Study by Test")
        table.add_column("Test", style="cyan")
        table.add_column("Studied", justify="right")
        table.add_column("Accuracy", justify="right")
        for r in stats["study_by_test"]:
            c = get_performance_color(r["accuracy"])
            table.add_row(r["test_name"], str(r["total_studied"]), f"[{c}]{r['accuracy']}%[/{c}]")
        console.print(table)
    if stats["mock_tests_by_test"]:
        table = Table(title="Mock Exams by Test")
        table.add_column("Test", style="cyan")
        table.add_column("Taken", justify="right")
        table.add_column("Average", justify="right")
        table.add_column("Passing", justify="right")
        for r in stats["mock_tests_by_test"]:
            c = get_performance_color(r["average_percentage"])
            table.add_row(
                r["test_name"], str(r["total_tests"]),
                f"[{c}]{r['average_percentage']}%[/{c}]", f"{r['passing_score']}%",
            )
        console.print(table)


def cmd_import(db_path: str):
    file_path = Prompt.ask("File path")
    if not Path(file_path).exists():
        console.print(f"[red]File not found: {file_path}[/red]")
        return
    try:
        result = import_question_bank(db_path, file_path)
    except ImportFormatError as e:
        console.print(f"[red]Could not import: {e}[/red]")
        return
    msg = f"[green]Imported {result['questions']} questions into {result['name']}[/green]"
    if result["hidden"]:
        msg += f" [yellow]({result['hidden']} without usable choices are hidden)[/yellow]"
    console.print(msg)


def main():
    configure_logging()
    db_path = DEFAULT_DB_PATH
    init_db(db_path)
    first_run = not is_seeded(db_path)
    if first_run:
        console.print("[dim]Setting up for first use...[/dim]")
    seed_all(db_path)
    if first_run:
        console.print("[green]Ready![/green]\n")

    user_id = settings.USER_ID
    synchronizer = ProgressSynchronizer(SqliteProgressStore(db_path), user_id, cache=LocalCache())
    show_welcome()

    try:
        while True:
            show_menu()
            choice = Prompt.ask("\n[bold]>[/bold]", default="random").strip().lower()
            try:
                if choice == "tests":
                    cmd_tests(db_path)
                elif choice == "random":
                    cmd_random(db_path, synchronizer)
                elif choice == "mock":
                    cmd_mock(db_path, synchronizer)
                elif choice == "practice":
                    cmd_practice(db_path, synchronizer)
                elif choice == "study":
                    cmd_study(db_path, synchronizer)
                elif choice == "history":
                    cmd_history(db_path, user_id)
                elif choice == "stats":
                    cmd_stats(db_path, user_id)
                elif choice == "import":
                    cmd_import(db_path)
                elif choice in ("quit", "exit", "q"):
                    console.print("[dim]Good luck on your exam![/dim]")
                    break
                else:
                    console.print("[red]Unknown command. Try again.[/red]")
            except SessionExitRequested:
                console.print("[dim]Back to menu.[/dim]")
            except KeyboardInterrupt:
                console.print("\n[dim]Use 'quit' to exit.[/dim]")
            except Exception as e:
                console.print(f"[red]Error: {e}[/red]")
    finally:
        synchronizer.shutdown(wait=True)


if __name__ == "__main__":
    main()
