import logging

from aiogram import Router, F
from aiogram.types import CallbackQuery

from quizbot.db.exceptions import PersistenceError
from quizbot.db.queries import delete_attempt
from quizbot.keyboards.history_kb import (
    delete_confirm_keyboard,
    deleted_keyboard,
    history_keyboard,
    review_keyboard,
)
from quizbot.services.progress_tracker import format_history, format_review
from quizbot.services.review import load_review

logger = logging.getLogger(__name__)
router = Router()


@router.callback_query(F.data == "history")
async def show_history(callback: CallbackQuery):
    text, attempts = await format_history(callback.message.chat.id)
    await callback.message.edit_text(text, reply_markup=history_keyboard(attempts))
    await callback.answer()


@router.callback_query(F.data.startswith("review:"))
async def show_review(callback: CallbackQuery):
    attempt_id = int(callback.data.split(":")[1])
    review = await load_review(attempt_id, user_id=callback.message.chat.id)
    if review is None:
        await callback.answer("Попытка не найдена")
        return
    # Sent as a new message so the result screen stays in the chat
    await callback.message.answer(format_review(review), reply_markup=review_keyboard())
    await callback.answer()


@router.callback_query(F.data.startswith("delete:"))
async def ask_delete(callback: CallbackQuery):
    attempt_id = int(callback.data.split(":")[1])
    await callback.message.edit_text(
        f"Удалить Quiz {attempt_id} из истории?",
        reply_markup=delete_confirm_keyboard(attempt_id),
    )
    await callback.answer()


@router.callback_query(F.data.startswith("delete_yes:"))
async def confirm_delete(callback: CallbackQuery):
    attempt_id = int(callback.data.split(":")[1])
    try:
        await delete_attempt(attempt_id, user_id=callback.message.chat.id)
    except PersistenceError:
        logger.exception("Delete failed for attempt %s", attempt_id)
        await callback.answer("❗ Не удалось удалить попытку", show_alert=True)
        return

    await callback.message.edit_text(
        "🗑 Попытка удалена\n\nВы можете пройти викторину снова, когда будете готовы.",
        reply_markup=deleted_keyboard(),
    )
    await callback.answer()
