from datetime import datetime
from typing import Optional

from quizbot.core.models import AttemptRecord
from quizbot.core.session import Phase, SessionState
from quizbot.db.queries import get_stats_summary, list_attempts
from quizbot.services.review import AttemptReview

MONTHS = [
    "января", "февраля", "марта", "апреля", "мая", "июня",
    "июля", "августа", "сентября", "октября", "ноября", "декабря",
]

DIFFICULTY_NAMES = {"easy": "Лёгкая", "medium": "Средняя", "hard": "Сложная"}

RESULT_TEXTS = {
    5: ("Идеально!", "5/5 — вы ответили на всё правильно. Это блестящий результат!"),
    4: ("Почти идеально!", "4/5 — очень близко к совершенству. Ещё один шаг!"),
    3: ("Хороший результат!", "3/5 — вы на верном пути. Продолжайте тренироваться!"),
    2: ("Есть над чем поработать", "2/5 — не расстраивайтесь, попробуйте ещё раз!"),
    1: ("Сложный вопрос?", "1/5 — иногда просто не ваш день. Следующая попытка будет лучше!"),
}
ZERO_RESULT = ("Бывает и так!", "0/5 — не отчаивайтесь. Начните заново и удивите себя!")

# Attempts listed on the history screen
HISTORY_LIMIT = 10

# Telegram rejects longer message texts
MESSAGE_LIMIT = 4096


def format_time(seconds: int) -> str:
    seconds = max(seconds, 0)
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def stars(score: int, total: int = 5) -> str:
    return "★" * score + "☆" * max(total - score, 0)


def result_texts(score: int) -> tuple[str, str]:
    return RESULT_TEXTS.get(score, ZERO_RESULT)


def format_timestamp(timestamp_ms: int, tz=None) -> str:
    """'17 октября, 14:05' in local time."""
    dt = datetime.fromtimestamp(timestamp_ms / 1000, tz)
    return f"{dt.day} {MONTHS[dt.month - 1]}, {dt:%H:%M}"


def format_question(state: SessionState) -> str:
    """Text of the current question, with the answer marks after a check."""
    q = state.current_question
    if q is None:
        return ""

    lines = [
        f"⏱ {format_time(state.remaining_seconds)}",
        f"❓ Вопрос {state.current_index + 1} из {len(state.questions)}",
        "",
        q.prompt,
    ]

    if state.checked:
        selected = state.selected_answers[state.current_index]
        if selected == q.correct_answer:
            lines += ["", "✅ Правильно!"]
        else:
            lines += ["", f"❌ Неправильно.\n📝 Правильный ответ: {q.correct_answer}"]
    else:
        lines += ["", "Вернуться к предыдущим вопросам нельзя"]

    return "\n".join(lines)


def format_result(state: SessionState) -> str:
    if state.phase is not Phase.COMPLETED:
        return ""
    total = len(state.questions)
    title, subtitle = result_texts(state.score)
    text = (
        f"📊 Результаты\n\n"
        f"{stars(state.score, total)}\n"
        f"{state.score} из {total}\n\n"
        f"{title}\n{subtitle}"
    )
    if state.error:
        text += f"\n\n❗ Результат не сохранён: {state.error}"
    return text


def format_attempt_line(attempt: AttemptRecord, tz=None) -> str:
    difficulty = DIFFICULTY_NAMES.get(attempt.difficulty, attempt.difficulty)
    return (
        f"Quiz {attempt.id} — {format_timestamp(attempt.timestamp, tz)}\n"
        f"{stars(attempt.score, attempt.total_questions)} {attempt.score}/{attempt.total_questions}"
        f" · {attempt.category} · {difficulty}"
    )


async def format_history(
    user_id: Optional[int],
    limit: int = HISTORY_LIMIT,
) -> tuple[str, list[AttemptRecord]]:
    """Format the latest attempts; returns the text and the attempts shown.

    Older attempts stay in the store and in the overall stats, only the list
    is cut so the message fits Telegram's text and keyboard limits.
    """
    attempts = await list_attempts(user_id, limit=limit)

    if not attempts:
        return "📭 Вы еще не проходили ни одной викторины", []

    lines = [f"📋 История (последние {limit})\n" if len(attempts) == limit else "📋 История\n"]
    for a in attempts:
        lines.append(format_attempt_line(a))
        lines.append("")

    stats = await format_overall_stats(user_id)
    if stats:
        lines.append(stats)

    return "\n".join(lines).rstrip()[:MESSAGE_LIMIT], attempts


async def format_overall_stats(user_id: Optional[int]) -> str:
    """Format overall statistics."""
    stats = await get_stats_summary(user_id)

    if not stats or not stats.get("total_tests"):
        return ""

    avg = stats.get("avg_score") or 0
    return (
        f"📊 Общая статистика:\n"
        f"Викторин пройдено: {stats['total_tests']}\n"
        f"Правильных ответов: {stats['total_correct']} из {stats['total_questions_answered']}\n"
        f"Средний результат: {avg:.1f}"
    )


def format_review(review: AttemptReview) -> str:
    attempt = review.attempt
    title, subtitle = result_texts(attempt.score)
    lines = [
        f"📊 Результаты — Quiz {attempt.id}",
        f"{stars(attempt.score, attempt.total_questions)} {attempt.score} из {attempt.total_questions}",
        title,
        subtitle,
        "",
        "Твои ответы",
    ]

    for n, item in enumerate(review.items, 1):
        record = item.record
        mark = "✅" if record.is_correct else "❌"
        lines.append("")
        lines.append(f"{mark} Вопрос {n} из {len(review.items)}")
        lines.append(record.question)
        for choice in item.choices:
            if choice == record.correct_answer:
                prefix = "🟢"
            elif choice == record.selected_answer:
                prefix = "🔴"
            else:
                prefix = "⚪"
            lines.append(f"{prefix} {choice}")
        if record.selected_answer is None:
            lines.append("— ответ не выбран")

    return "\n".join(lines)
