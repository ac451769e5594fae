from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton

from quizbot.core.models import AttemptRecord


def history_keyboard(attempts: list[AttemptRecord]) -> InlineKeyboardMarkup:
    buttons = []
    for a in attempts:
        buttons.append([
            InlineKeyboardButton(text=f"🔎 Quiz {a.id}", callback_data=f"review:{a.id}"),
            InlineKeyboardButton(text="🗑 Удалить", callback_data=f"delete:{a.id}"),
        ])
    buttons.append([InlineKeyboardButton(text="🏠 В меню", callback_data="go_home")])
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def delete_confirm_keyboard(attempt_id: int) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [
            InlineKeyboardButton(text="Удалить", callback_data=f"delete_yes:{attempt_id}"),
            InlineKeyboardButton(text="Отмена", callback_data="history"),
        ],
    ])


def deleted_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="Хорошо", callback_data="history")],
    ])


def review_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="🔙 К истории", callback_data="history")],
        [InlineKeyboardButton(text="🔄 Начать заново", callback_data="start_quiz")],
    ])
