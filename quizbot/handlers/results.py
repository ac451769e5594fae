from aiogram import Router, F
from aiogram.types import CallbackQuery

from quizbot.core.session import Phase, RetrySave, StartAgain
from quizbot.handlers.quiz import drop_session, send_event

router = Router()


@router.callback_query(F.data == "start_again")
async def start_again(callback: CallbackQuery):
    state = await send_event(callback, StartAgain())
    if state is not None and state.phase is Phase.IDLE:
        await drop_session(callback.message.chat.id)


@router.callback_query(F.data == "retry_save")
async def retry_save(callback: CallbackQuery):
    """Try to write an attempt whose first save failed."""
    await send_event(callback, RetrySave())
