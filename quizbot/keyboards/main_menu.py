from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton


def main_menu_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="▶️ Начать викторину", callback_data="start_quiz")],
        [InlineKeyboardButton(text="📋 История", callback_data="history")],
    ])
