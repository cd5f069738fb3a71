"""Interactive CLI application."""
import logging
from datetime import date
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Confirm, FloatPrompt, IntPrompt, Prompt
from rich.table import Table

from study_pilot.assistant import chat
from study_pilot.config import Settings, load_settings
from study_pilot.dashboard import get_analytics, get_priority_color, get_score_color
from study_pilot.db import init_db
from study_pilot.drafting import SESSION_LENGTHS, STUDY_TIME_STARTS
from study_pilot.errors import StudyPilotError
from study_pilot.exams import add_exam, list_exams, log_exam_results
from study_pilot.importer import import_marksheet
from study_pilot.models import SubjectMark, UserPreferences, parse_iso_date
from study_pilot.oracle import generate_text
from study_pilot.planner import compute_allocations, generate_plan, list_sessions, set_session_completed
from study_pilot.profile import complete_onboarding, get_marks, get_preferences, save_preferences
from study_pilot.quiz import generate_quiz
from study_pilot.reschedule import list_missed_sessions, reschedule_missed
from study_pilot.syllabus import add_topic, list_topics, toggle_topic

console = Console()


def show_welcome():
    console.print(Panel(
        "[bold]StudyPilot[/bold]\n[dim]AI-Powered Revision Planner[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("onboard", "Enter marks and study preferences"),
        ("prefs", "Change study preferences"),
        ("import", "Read marks from a marksheet file"),
        ("exams", "View or add exam dates"),
        ("results", "Log new exam results"),
        ("generate", "Generate a study plan"),
        ("plan", "View upcoming sessions"),
        ("done", "Mark a session complete"),
        ("missed", "Review and reschedule missed sessions"),
        ("dashboard", "Progress + time allocation"),
        ("topics", "Syllabus checklist"),
        ("ask", "Chat with the study assistant"),
        ("quiz", "Practice quiz on a topic"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def prompt_marks(label: str = "Subject") -> list[SubjectMark]:
    marks = []
    console.print("[dim]Leave the subject empty to finish.[/dim]")
    while True:
        subject = Prompt.ask(label, default="").strip()
        if not subject:
            return marks
        score = FloatPrompt.ask(f"  Marks for {subject}")
        out_of = FloatPrompt.ask("  Out of", default=100.0)
        marks.append(SubjectMark(subject=subject, marks=score, max_marks=out_of))


def prompt_preferences(current: UserPreferences | None = None) -> UserPreferences:
    current = current or UserPreferences()
    return UserPreferences(
        learning_style=Prompt.ask("Learning style", choices=["visual", "auditory", "reading", "kinesthetic"],
                                  default=current.learning_style or "visual"),
        study_time=Prompt.ask("Best time to study", choices=list(STUDY_TIME_STARTS), default=current.study_time or "morning"),
        session_length=Prompt.ask("Session length", choices=list(SESSION_LENGTHS),
                                  default=current.session_length or "medium"),
        environment=current.environment,
        motivation=current.motivation,
    )


def oracle_fn(settings: Settings):
    return lambda prompt, system_instruction: generate_text(prompt, system_instruction, settings)


def show_sessions(sessions: list, title: str) -> None:
    table = Table(title=title)
    table.add_column("ID", justify="right")
    table.add_column("Date")
    table.add_column("Time")
    table.add_column("Subject", style="cyan")
    table.add_column("Min", justify="right")
    table.add_column("Priority")
    table.add_column("Done")
    for s in sessions:
        color = get_priority_color(s["priority"] or "")
        table.add_row(
            str(s["id"]),
            s["plan_date"],
            f"{s['start_time'] or ''}-{s['end_time'] or ''}",
            s["subject"],
            str(s["duration_minutes"] or ""),
            f"[{color}]{s['priority'] or ''}[/{color}]",
            "[green]yes[/green]" if s["is_completed"] else "",
        )
    console.print(table)


def cmd_onboard(settings: Settings, user_id: str):
    console.print("\n[bold]Onboarding[/bold]")
    marks = prompt_marks()
    if not marks:
        console.print("[yellow]No subjects entered, nothing saved.[/yellow]")
        return
    complete_onboarding(settings.db_path, user_id, marks, prompt_preferences())
    console.print(f"[green]Saved {len(marks)} subjects.[/green]")


def cmd_import(settings: Settings, user_id: str):
    file_path = Prompt.ask("Marksheet path")
    if not Path(file_path).exists():
        console.print(f"[red]File not found: {file_path}[/red]")
        return
    result = import_marksheet(settings.db_path, user_id, file_path)
    console.print(f"[green]Imported {result['count']} subjects from {result['filename']}: "
                  f"{', '.join(result['subjects'])}[/green]")


def cmd_exams(settings: Settings, user_id: str):
    upcoming = list_exams(settings.db_path, user_id)
    table = Table(title="Exam Schedule")
    table.add_column("Date")
    table.add_column("Subject", style="cyan")
    table.add_column("Exam")
    for e in upcoming:
        table.add_row(e["exam_date"], e["subject"], e["exam_name"] or "")
    console.print(table)
    if Confirm.ask("Add an exam?", default=False):
        subject = Prompt.ask("Subject")
        exam_date = parse_iso_date(Prompt.ask("Exam date (YYYY-MM-DD)"), "exam date")
        name = Prompt.ask("Exam name", default="")
        add_exam(settings.db_path, user_id, subject, exam_date, name or None)
        console.print("[green]Exam added.[/green]")


def cmd_results(settings: Settings, user_id: str):
    exam_name = Prompt.ask("Exam name")
    exam_date = parse_iso_date(Prompt.ask("Exam date (YYYY-MM-DD)", default=date.today().isoformat()), "exam date")
    results = prompt_marks()
    count = log_exam_results(settings.db_path, user_id, exam_name, exam_date, results)
    console.print(f"[green]Logged {count} results. Current marks updated.[/green]")


def cmd_generate(settings: Settings, user_id: str):
    start = parse_iso_date(Prompt.ask("Start date", default=date.today().isoformat()), "start date")
    days = IntPrompt.ask("Number of days", default=7)
    hours = FloatPrompt.ask("Study hours per day", default=4.0)
    with console.status("Drafting your plan..."):
        result = generate_plan(
            settings.db_path, user_id,
            oracle_fn(settings),
            start_date=start, days=days, hours_per_day=hours,
        )
    summary = result["plan"].summary
    console.print(Panel(
        f"Saved [bold]{result['sessions_saved']}[/bold] sessions over {len(result['plan'].days)} days "
        f"({summary.total_hours:g} h)\n"
        f"[cyan]Focus: {', '.join(summary.focus_areas) or '-'}[/cyan]\n{summary.recommendation}",
        title="Plan Generated", border_style="green",
    ))


def cmd_plan(settings: Settings, user_id: str):
    sessions = list_sessions(settings.db_path, user_id)
    if not sessions:
        console.print("[yellow]No upcoming sessions. Use 'generate' to create a plan.[/yellow]")
        return
    show_sessions(sessions, "Upcoming Sessions")


def cmd_done(settings: Settings, user_id: str):
    session_id = IntPrompt.ask("Session ID")
    completed = Confirm.ask("Completed?", default=True)
    set_session_completed(settings.db_path, user_id, session_id, completed)
    console.print("[green]Session updated.[/green]")


def cmd_missed(settings: Settings, user_id: str):
    missed = list_missed_sessions(settings.db_path, user_id)
    if not missed:
        console.print("[green]No missed sessions. Nice work![/green]")
        return
    show_sessions(missed, "Missed Sessions")
    if Confirm.ask(f"Reschedule all {len(missed)} onto upcoming days?", default=True):
        count = reschedule_missed(
            settings.db_path, user_id,
            max_per_day=settings.max_sessions_per_day,
            horizon_days=settings.reschedule_horizon_days,
        )
        console.print(f"[green]Rescheduled {count} sessions.[/green]")


def cmd_dashboard(settings: Settings, user_id: str):
    stats = get_analytics(settings.db_path, user_id)
    overview = stats["overview"]
    console.print(Panel(
        f"Sessions: [bold]{overview['completedSessions']}/{overview['totalSessions']}[/bold] "
        f"({overview['completionRate']}%)  |  "
        f"Studied: [bold]{overview['completedStudyMinutes']}[/bold] min  |  "
        f"Streak: [bold]{overview['streak']}[/bold] days  |  "
        f"This week: [bold]{overview['thisWeekCompleted']}[/bold] sessions",
        title="Study Dashboard", border_style="blue",
    ))

    if not get_marks(settings.db_path, user_id):
        console.print("[yellow]No subjects yet. Use 'onboard' or 'import' first.[/yellow]")
        return
    allocations = compute_allocations(settings.db_path, user_id, date.today(), 4)
    table = Table(title="Suggested Daily Time (4 h budget)")
    table.add_column("Subject", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Exam", justify="right")
    table.add_column("Min/day", justify="right")
    table.add_column("Priority")
    for a in allocations:
        sc_color = get_score_color(a.percentage)
        pr_color = get_priority_color(a.priority)
        table.add_row(
            a.subject,
            f"[{sc_color}]{a.percentage:.0f}%[/{sc_color}]",
            f"{a.exam.days_until} d" if a.exam else "",
            str(a.minutes_per_day),
            f"[{pr_color}]{a.priority}[/{pr_color}]",
        )
    console.print(table)
    prefs = get_preferences(settings.db_path, user_id)
    console.print(f"[dim]Preferred start {STUDY_TIME_STARTS.get(prefs.study_time or '', '09:00')}, "
                  f"{prefs.learning_style} learner[/dim]")


def cmd_prefs(settings: Settings, user_id: str):
    prefs = prompt_preferences(get_preferences(settings.db_path, user_id))
    save_preferences(settings.db_path, user_id, prefs)
    console.print("[green]Preferences saved.[/green]")


def cmd_topics(settings: Settings, user_id: str):
    topics = list_topics(settings.db_path, user_id)
    table = Table(title="Syllabus")
    table.add_column("ID", justify="right")
    table.add_column("Subject", style="cyan")
    table.add_column("Chapter")
    table.add_column("Topic")
    table.add_column("Priority")
    table.add_column("Done")
    for t in topics:
        color = get_priority_color(t["priority"] or "")
        table.add_row(
            str(t["id"]), t["subject"], t["chapter"] or "", t["topic"],
            f"[{color}]{t['priority']}[/{color}]",
            "[green]yes[/green]" if t["is_completed"] else "",
        )
    console.print(table)
    action = Prompt.ask("Add, toggle, or back", choices=["add", "toggle", "back"], default="back")
    if action == "add":
        topic = add_topic(
            settings.db_path, user_id,
            Prompt.ask("Subject"), Prompt.ask("Topic"),
            Prompt.ask("Chapter", default="") or None,
            Prompt.ask("Priority", choices=["high", "medium", "low"], default="medium"),
        )
        console.print(f"[green]Added {topic['topic']}.[/green]")
    elif action == "toggle":
        toggle_topic(settings.db_path, user_id, IntPrompt.ask("Topic ID"))
        console.print("[green]Topic updated.[/green]")


def cmd_ask(settings: Settings, user_id: str):
    message = Prompt.ask("[bold]You[/bold]")
    with console.status("Thinking..."):
        result = chat(settings.db_path, user_id, message, oracle_fn(settings))
    console.print(Panel(result["reply"], title="Study Buddy", border_style="magenta"))
    for action in result["actions"]:
        d = action["details"]
        if action["type"] == "exam_added":
            console.print(f"[green]+ Exam: {d['subject']} on {d['date']}[/green]")
        else:
            console.print(f"[green]+ Topic: {d['subject']} / {d['topic']}[/green]")


def cmd_quiz(settings: Settings, user_id: str):
    subject = Prompt.ask("Subject")
    topic = Prompt.ask("Topic")
    with console.status("Writing questions..."):
        questions = generate_quiz(settings.db_path, user_id, subject, topic, oracle_fn(settings))
    score = 0
    for i, q in enumerate(questions, 1):
        console.print(f"\n[bold]Q{i}. {q.question}[/bold]")
        for n, option in enumerate(q.options, 1):
            console.print(f"  {n}. {option}")
        answer = IntPrompt.ask("Your answer", choices=[str(n) for n in range(1, len(q.options) + 1)])
        if answer - 1 == q.correct_index:
            score += 1
            console.print("[green]Correct![/green]")
        else:
            console.print(f"[red]Answer: {q.options[q.correct_index]}[/red]")
    color = get_score_color(score / len(questions) * 100)
    console.print(f"\n[{color}]Score: {score}/{len(questions)}[/{color}]")


COMMANDS = {
    "onboard": cmd_onboard,
    "import": cmd_import,
    "exams": cmd_exams,
    "results": cmd_results,
    "generate": cmd_generate,
    "plan": cmd_plan,
    "done": cmd_done,
    "missed": cmd_missed,
    "dashboard": cmd_dashboard,
    "prefs": cmd_prefs,
    "topics": cmd_topics,
    "ask": cmd_ask,
    "quiz": cmd_quiz,
}


def main():
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    init_db(settings.db_path)
    user_id = settings.local_user

    show_welcome()

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="plan").strip().lower()
        try:
            if choice in ("quit", "exit", "q"):
                console.print("[dim]Good luck with your exams![/dim]")
                break
            command = COMMANDS.get(choice)
            if command is None:
                console.print("[red]Unknown command. Try again.[/red]")
                continue
            command(settings, user_id)
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except StudyPilotError as e:
            console.print(f"[red]Error: {e.message}[/red]")


if __name__ == "__main__":
    main()
