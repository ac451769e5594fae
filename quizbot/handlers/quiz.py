import logging
from functools import partial

from aiogram import Bot, F, Router
from aiogram.exceptions import TelegramBadRequest
from aiogram.types import CallbackQuery, InlineKeyboardMarkup

from quizbot.config import CATEGORIES, settings
from quizbot.core.models import Difficulty
from quizbot.core.session import (
    Abandon,
    Acknowledge,
    Advance,
    Back,
    Check,
    ConfirmSelection,
    Event,
    Phase,
    Retry,
    SelectChoice,
    SessionState,
    Start,
)
from quizbot.db.queries import save_attempt
from quizbot.keyboards.main_menu import main_menu_keyboard
from quizbot.keyboards.quiz_kb import (
    answers_keyboard,
    category_keyboard,
    difficulty_keyboard,
    load_error_keyboard,
    result_keyboard,
    time_up_keyboard,
)
from quizbot.services.progress_tracker import format_question, format_result
from quizbot.services.quiz_session import QuizSession, registry
from quizbot.trivia.client import trivia_client

logger = logging.getLogger(__name__)
router = Router()

WELCOME_TEXT = (
    "👋 Добро пожаловать в DailyQuiz!\n\n"
    "5 вопросов, 5 минут. Выбери, что хочешь сделать:"
)
SELECT_TEXT = "Почти готовы!\nОсталось выбрать категорию и сложность викторины."
TIME_UP_TEXT = "⏰ Время вышло!\n\nВы не успели завершить викторину.\nПопробуйте еще раз!"
STALE_TEXT = "Эта викторина уже закончилась."

# Chat id -> id of the message the session is drawn into
_screens: dict[int, int] = {}

# Redraw the timer this often while nobody presses anything
TIMER_REDRAW_SECONDS = 10


def screen_for(state: SessionState) -> tuple[str, InlineKeyboardMarkup | None]:
    """Text and keyboard for the session's current phase."""
    phase = state.phase
    if phase is Phase.SELECTING_CATEGORY:
        return SELECT_TEXT, category_keyboard()
    if phase is Phase.LOADING:
        category = CATEGORIES.get(state.category_id, "")
        return f"⏳ Загружаю вопросы...\n\n📚 {category}", None
    if phase is Phase.LOAD_ERROR:
        text = "😞 Ошибка загрузки вопросов"
        if state.error:
            text += f"\n\n{state.error}"
        return text, load_error_keyboard()
    if phase is Phase.IN_PROGRESS:
        return format_question(state), answers_keyboard(state)
    if phase is Phase.TIMED_OUT:
        return TIME_UP_TEXT, time_up_keyboard()
    if phase is Phase.COMPLETED:
        return format_result(state), result_keyboard(state.attempt_id, save_failed=bool(state.error))
    return WELCOME_TEXT, main_menu_keyboard()


def needs_redraw(old: SessionState, new: SessionState) -> bool:
    """Skip redraws for countdown ticks except every few seconds."""
    if old.phase is not new.phase:
        return True
    ticked_only = (
        new.phase is Phase.IN_PROGRESS
        and old.remaining_seconds != new.remaining_seconds
        and (old.current_index, old.checked, old.selected_answers)
        == (new.current_index, new.checked, new.selected_answers)
    )
    if ticked_only:
        return new.remaining_seconds % TIMER_REDRAW_SECONDS == 0
    return True


async def draw(bot: Bot, chat_id: int, state: SessionState):
    """Edit the session message in place, sending a new one if that fails."""
    text, keyboard = screen_for(state)
    message_id = _screens.get(chat_id)
    if message_id is not None:
        try:
            await bot.edit_message_text(text, chat_id=chat_id, message_id=message_id, reply_markup=keyboard)
            return
        except TelegramBadRequest as e:
            if "message is not modified" in str(e):
                return
            logger.debug("Could not edit message %s: %s", message_id, e)
    sent = await bot.send_message(chat_id, text, reply_markup=keyboard)
    _screens[chat_id] = sent.message_id


def _make_listener(bot: Bot, chat_id: int):
    async def on_change(old: SessionState, new: SessionState):
        if needs_redraw(old, new):
            await draw(bot, chat_id, new)
    return on_change


def new_session(bot: Bot, chat_id: int) -> QuizSession:
    return QuizSession(
        fetch_questions=trivia_client.fetch_questions,
        save_attempt=partial(save_attempt, user_id=chat_id),
        on_change=_make_listener(bot, chat_id),
        reveal_seconds=settings.REVEAL_DELAY_SECONDS,
    )


async def drop_session(chat_id: int):
    """Close the chat's session and forget the message it was drawn into."""
    await registry.drop(chat_id)
    _screens.pop(chat_id, None)


async def send_event(callback: CallbackQuery, event: Event) -> SessionState | None:
    """Forward an event to the chat's session; None if there is no session."""
    chat_id = callback.message.chat.id
    session = registry.get(chat_id)
    if session is None:
        await callback.answer(STALE_TEXT)
        return None
    _screens[chat_id] = callback.message.message_id
    state = await session.dispatch(event)
    await callback.answer()
    return state


@router.callback_query(F.data == "start_quiz")
async def start_quiz(callback: CallbackQuery, bot: Bot):
    chat_id = callback.message.chat.id
    await drop_session(chat_id)
    registry.set(chat_id, new_session(bot, chat_id))
    logger.info("Chat %s started a quiz", chat_id)
    await send_event(callback, Start())


@router.callback_query(F.data == "back_to_menu")
async def back_to_menu(callback: CallbackQuery):
    await send_event(callback, Back())


@router.callback_query(F.data.startswith("cat:"))
async def category_selected(callback: CallbackQuery):
    category_id = int(callback.data.split(":")[1])
    await callback.message.edit_text(
        f"📚 {CATEGORIES.get(category_id, '')}\n\nВыберите сложность",
        reply_markup=difficulty_keyboard(category_id),
    )
    await callback.answer()


@router.callback_query(F.data.startswith("diff:"))
async def difficulty_selected(callback: CallbackQuery):
    _, category_id, difficulty = callback.data.split(":")
    await send_event(callback, ConfirmSelection(int(category_id), Difficulty(difficulty)))


@router.callback_query(F.data == "retry")
async def retry(callback: CallbackQuery):
    await send_event(callback, Retry())


@router.callback_query(F.data == "retry_pick")
async def retry_pick_category(callback: CallbackQuery):
    await callback.message.edit_text(
        "Выберите категорию",
        reply_markup=category_keyboard(prefix="rcat", back="retry_back"),
    )
    await callback.answer()


@router.callback_query(F.data == "retry_back")
async def retry_back(callback: CallbackQuery, bot: Bot):
    session = registry.get(callback.message.chat.id)
    if session is None:
        await callback.answer(STALE_TEXT)
        return
    await draw(bot, callback.message.chat.id, session.state)
    await callback.answer()


@router.callback_query(F.data.startswith("rcat:"))
async def retry_category_selected(callback: CallbackQuery):
    category_id = int(callback.data.split(":")[1])
    await callback.message.edit_text(
        f"📚 {CATEGORIES.get(category_id, '')}\n\nВыберите сложность",
        reply_markup=difficulty_keyboard(category_id, prefix="rdiff", back="retry_pick"),
    )
    await callback.answer()


@router.callback_query(F.data.startswith("rdiff:"))
async def retry_difficulty_selected(callback: CallbackQuery):
    _, category_id, difficulty = callback.data.split(":")
    await send_event(callback, Retry(int(category_id), Difficulty(difficulty)))


@router.callback_query(F.data.startswith("ans:"))
async def answer_selected(callback: CallbackQuery):
    """The session maps the button index to the answer text under its own lock."""
    try:
        _, question_index, choice_index = callback.data.split(":")
        event = SelectChoice(int(question_index), int(choice_index))
    except ValueError:
        await callback.answer(STALE_TEXT)
        return
    await send_event(callback, event)


@router.callback_query(F.data == "check")
async def check_answer(callback: CallbackQuery):
    await send_event(callback, Check())


@router.callback_query(F.data == "advance")
async def advance(callback: CallbackQuery):
    await send_event(callback, Advance())


@router.callback_query(F.data == "cancel_quiz")
async def cancel_quiz(callback: CallbackQuery):
    """Cancel the current quiz and go home."""
    chat_id = callback.message.chat.id
    if registry.get(chat_id) is None:
        await callback.message.edit_text(WELCOME_TEXT, reply_markup=main_menu_keyboard())
        await callback.answer()
        return
    # The listener redraws the welcome screen once the session is idle
    await send_event(callback, Abandon())
    await drop_session(chat_id)


@router.callback_query(F.data == "time_up_ok")
async def time_up_acknowledged(callback: CallbackQuery):
    state = await send_event(callback, Acknowledge())
    if state is not None and state.phase is Phase.IDLE:
        await drop_session(callback.message.chat.id)
