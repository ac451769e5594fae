from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton

from quizbot.config import CATEGORIES
from quizbot.core.models import Difficulty
from quizbot.core.session import SessionState

DIFFICULTY_LABELS = {
    Difficulty.EASY: "Лёгкая",
    Difficulty.MEDIUM: "Средняя",
    Difficulty.HARD: "Сложная",
}


def category_keyboard(prefix: str = "cat", back: str = "back_to_menu") -> InlineKeyboardMarkup:
    buttons = []
    for category_id, name in CATEGORIES.items():
        buttons.append([InlineKeyboardButton(text=name, callback_data=f"{prefix}:{category_id}")])
    buttons.append([InlineKeyboardButton(text="🔙 Назад", callback_data=back)])
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def difficulty_keyboard(category_id: int, prefix: str = "diff", back: str = "start_quiz") -> InlineKeyboardMarkup:
    buttons = [
        [InlineKeyboardButton(text=label, callback_data=f"{prefix}:{category_id}:{difficulty.value}")]
        for difficulty, label in DIFFICULTY_LABELS.items()
    ]
    buttons.append([InlineKeyboardButton(text="🔙 Назад к категориям", callback_data=back)])
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def answers_keyboard(state: SessionState) -> InlineKeyboardMarkup:
    """Answer buttons for the current question.

    Buttons carry the question and choice indexes, answer texts can exceed
    the 64 byte callback_data limit.
    """
    index = state.current_index
    question = state.questions[index]
    selected = state.selected_answers[index]

    buttons = []
    for i, choice in enumerate(state.choice_sets[index]):
        if state.checked:
            if choice == question.correct_answer:
                mark = "✅"
            elif choice == selected:
                mark = "❌"
            else:
                mark = "▫️"
        else:
            mark = "🔘" if choice == selected else "⚪"
        buttons.append([InlineKeyboardButton(text=f"{mark} {choice}", callback_data=f"ans:{index}:{i}")])

    label = "Завершить" if state.is_last_question else "Далее"
    if state.checked:
        # Skips the rest of the reveal pause
        buttons.append([InlineKeyboardButton(text=f"➡️ {label}", callback_data="advance")])
    elif selected is not None:
        buttons.append([InlineKeyboardButton(text=f"➡️ {label}", callback_data="check")])
    buttons.append([InlineKeyboardButton(text="❌ Отменить викторину", callback_data="cancel_quiz")])
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def load_error_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="🔄 Попробовать снова", callback_data="retry")],
        [InlineKeyboardButton(text="📚 Другая категория", callback_data="retry_pick")],
        [InlineKeyboardButton(text="🏠 В меню", callback_data="cancel_quiz")],
    ])


def time_up_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="🔄 Начать заново", callback_data="time_up_ok")],
    ])


def result_keyboard(attempt_id: int | None, save_failed: bool = False) -> InlineKeyboardMarkup:
    buttons = []
    if attempt_id is not None:
        buttons.append([InlineKeyboardButton(text="🔎 Разбор ответов", callback_data=f"review:{attempt_id}")])
    elif save_failed:
        buttons.append([InlineKeyboardButton(text="💾 Сохранить ещё раз", callback_data="retry_save")])
    buttons.append([InlineKeyboardButton(text="🔄 Начать заново", callback_data="start_again")])
    return InlineKeyboardMarkup(inline_keyboard=buttons)
