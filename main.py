#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Vocabulary trainer bot.

Users add words with translations, get a due-list of words to repeat and
take 4-option quizzes; every answer reschedules the word's next review.
"""

import logging
from datetime import time
from typing import List, Optional

from telegram import Update, InlineKeyboardButton, InlineKeyboardMarkup
from telegram.ext import (
    Application, CommandHandler, CallbackQueryHandler, ContextTypes,
)
from telegram.constants import ParseMode
from telegram.error import TelegramError
from telegram.helpers import escape_markdown

from config.settings import settings
from core.database import db
from core.errors import (
    AlreadyAnswered, InsufficientVocabulary, NotFound, StorageUnavailable,
    ValidationError, VocabularyError,
)
from core.models import VocabularyItem
from core.service import AnswerResult, IssuedQuiz, VocabularyService, parse_add_command

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=settings.LOG_LEVEL,
)
logger = logging.getLogger(__name__)

service = VocabularyService(db, due_limit=settings.DUE_LIMIT)

ADD_USAGE = (
    "Use the format: /add word - translation\n"
    "Example: /add apple - яблоко\n"
    "With context: /add beautiful - красивый - (She is beautiful)"
)

# ═══════════════════════════════════════════════════
#  Formatting helpers
# ═══════════════════════════════════════════════════
def _md(text: str) -> str:
    return escape_markdown(text or "", version=1)


def format_word_list(title: str, words: List[VocabularyItem]) -> str:
    lines = [title, ""]
    for i, w in enumerate(words, start=1):
        line = f"{i}. *{_md(w.headword)}* - {_md(w.translation)}"
        if w.context:
            line += f" ({_md(w.context)})"
        lines.append(line)
    return "\n".join(lines)


def build_options_display(opts: List[str], correct_idx: int, selected_idx: int = -1) -> str:
    """Every option after answering, marked ✅ / ❌ / ◻️."""
    lines = []
    for i, opt in enumerate(opts):
        if   i == correct_idx:                    icon = "✅"
        elif i == selected_idx != correct_idx:    icon = "❌"
        else:                                      icon = "◻️"
        lines.append(f"{icon} {i + 1}. {_md(opt)}")
    return "\n".join(lines)


def format_answer(question_text: str, result: AnswerResult) -> str:
    verdict = "✅ *Correct!* Great job!" if result.correct else "❌ *Wrong.* Keep going!"
    days    = result.item.interval_days
    return (
        f"{_md(question_text)}\n\n"
        f"{build_options_display(list(result.options), result.correct_idx, result.selected_idx)}\n\n"
        f"{verdict}\n"
        f"🔁 Next review in {days} day{'s' if days != 1 else ''}."
    )


def format_stats(report: dict) -> str:
    st = report["stages"]
    text = (
        f"📊 *Your statistics*\n\n"
        f"📚 Words: *{report['total_words']}* | ⏰ due now: *{report['due_words']}*\n"
        f"🌱 new: {st['new']} | 🌿 learning: {st['learning']} | 🏆 mastered: {st['mastered']}\n\n"
        f"🧠 Quiz answers: *{report['answered']}*\n"
        f"✅ correct: {report['correct']} | ❌ wrong: {report['wrong']}\n"
        f"🎯 accuracy: *{report['accuracy']}%*"
    )
    if report["hardest"]:
        hard = ", ".join(_md(w.headword) for w in report["hardest"])
        text += f"\n\n❗ Hardest words: {hard}"
    return text

# ═══════════════════════════════════════════════════
#  Keyboards
# ═══════════════════════════════════════════════════
def main_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([
        [InlineKeyboardButton("🧠 Quiz",   callback_data="menu_quiz"),
         InlineKeyboardButton("🔄 Review", callback_data="menu_review")],
        [InlineKeyboardButton("📚 Words",  callback_data="menu_words"),
         InlineKeyboardButton("📊 Stats",  callback_data="menu_stats")],
    ])


def quiz_keyboard(issued: IssuedQuiz) -> InlineKeyboardMarkup:
    # only the quiz id and the chosen slot travel through Telegram;
    # the correct slot stays in the database
    return InlineKeyboardMarkup([
        [InlineKeyboardButton(f"{i + 1}. {opt}", callback_data=f"quiz_{issued.quiz_id}_{i}")]
        for i, opt in enumerate(issued.question.options)
    ])


def next_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([[
        InlineKeyboardButton("⏭ Next question", callback_data="menu_quiz"),
        InlineKeyboardButton("🏠 Menu",          callback_data="menu_back"),
    ]])

# ═══════════════════════════════════════════════════
#  Reply helper (command message or menu callback)
# ═══════════════════════════════════════════════════
async def _respond(update: Update, text: str,
                   reply_markup: Optional[InlineKeyboardMarkup] = None,
                   parse_mode: Optional[str] = ParseMode.MARKDOWN):
    if update.callback_query:
        await update.callback_query.answer()
        await update.callback_query.edit_message_text(
            text, reply_markup=reply_markup, parse_mode=parse_mode,
        )
    elif update.message:
        await update.message.reply_text(text, reply_markup=reply_markup, parse_mode=parse_mode)

# ═══════════════════════════════════════════════════
#  /start  /help
# ═══════════════════════════════════════════════════
async def start(update: Update, context: ContextTypes.DEFAULT_TYPE):
    user = update.effective_user
    await service.register_user(user.id, user.username or "", user.first_name or "", user.last_name or "")
    text = (
        f"Hi, {_md(user.first_name or 'there')}! 👋\n\n"
        "I help you learn vocabulary. Here is what I can do:\n\n"
        "📝 /add - add a new word\n"
        "📚 /words - list your words\n"
        "🧠 /quiz - take a quiz\n"
        "🔄 /review - words due for review\n"
        "❓ /help - show help\n\n"
        "Start by adding words with /add!"
    )
    await _respond(update, text, reply_markup=main_keyboard())


async def help_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    text = (
        "🤖 *Vocabulary trainer help*\n\n"
        "📝 /add word - translation - add a word\n"
        "   Example: /add apple - яблоко\n\n"
        "📚 /words - show all your words\n"
        "🧠 /quiz - test yourself on your words\n"
        "🔄 /review - words whose review is due\n"
        "🗑️ /delete N - delete word number N from /words\n"
        "📊 /stats - learning statistics\n"
        "❓ /help - this help\n\n"
        "💡 Add context to words to remember them better:\n"
        "/add beautiful - красивый - (She is beautiful)"
    )
    await update.message.reply_text(text, parse_mode=ParseMode.MARKDOWN)


async def menu_back(update: Update, context: ContextTypes.DEFAULT_TYPE):
    await _respond(update, "Choose an action:", reply_markup=main_keyboard())

# ═══════════════════════════════════════════════════
#  Words: add / list / delete
# ═══════════════════════════════════════════════════
async def add_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    raw = " ".join(context.args or [])
    if not raw.strip():
        await update.message.reply_text(ADD_USAGE)
        return
    try:
        word, translation, ctx_text = parse_add_command(raw)
    except ValidationError:
        await update.message.reply_text(ADD_USAGE)
        return
    item = await service.add_word(update.effective_user.id, word, translation, ctx_text)
    await update.message.reply_text(
        f"✅ Word *{_md(item.headword)}* added! First review tomorrow.",
        parse_mode=ParseMode.MARKDOWN,
    )


async def words_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    words = await service.list_words(update.effective_user.id)
    if not words:
        await _respond(update, "You have no saved words yet. Add some with /add!",
                       reply_markup=main_keyboard(), parse_mode=None)
        return
    await _respond(update, format_word_list("📚 *Your words:*", words), reply_markup=main_keyboard())


async def delete_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    if not context.args or not context.args[0].isdigit():
        await update.message.reply_text(
            "Use the format: /delete N\nExample: /delete 1\n\nSee the numbers with /words"
        )
        return
    try:
        item = await service.delete_word_at(update.effective_user.id, int(context.args[0]))
    except NotFound as e:
        await update.message.reply_text(f"❌ {e}. See /words for the list.")
        return
    await update.message.reply_text(
        f"🗑️ Word *{_md(item.headword)}* deleted.", parse_mode=ParseMode.MARKDOWN,
    )

# ═══════════════════════════════════════════════════
#  Review / quiz
# ═══════════════════════════════════════════════════
async def review_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    words = await service.due_words(update.effective_user.id)
    if not words:
        await _respond(
            update,
            "🎉 Nothing to review right now. Check back later or add new words!",
            reply_markup=main_keyboard(), parse_mode=None,
        )
        return
    text = format_word_list("🔄 *Words to review:*", words)
    text += "\n\n💡 Take a /quiz to lock them in!"
    await _respond(update, text, reply_markup=main_keyboard())


async def quiz_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    try:
        issued = await service.new_quiz(update.effective_user.id)
    except InsufficientVocabulary as e:
        await _respond(
            update,
            f"🧠 A quiz needs at least {e.required} words, you have {e.available}. "
            f"Add more with /add!",
            reply_markup=main_keyboard(), parse_mode=None,
        )
        return
    await _respond(update, issued.question.question,
                   reply_markup=quiz_keyboard(issued), parse_mode=None)


async def quiz_answer(update: Update, context: ContextTypes.DEFAULT_TYPE):
    q = update.callback_query
    _, qid_str, idx_str = q.data.split("_")
    try:
        result = await service.answer_quiz(update.effective_user.id, int(qid_str), int(idx_str))
    except AlreadyAnswered:
        await q.answer("You have already answered this question.")
        return
    except (NotFound, ValidationError):
        await q.answer("This quiz is no longer available.", show_alert=True)
        return

    await q.answer("✅ Correct!" if result.correct else "❌ Wrong", show_alert=False)
    question_text = q.message.text if q.message else ""
    try:
        await q.edit_message_text(
            format_answer(question_text, result),
            reply_markup=next_keyboard(), parse_mode=ParseMode.MARKDOWN,
        )
    except TelegramError as e:
        logger.warning(f"quiz_answer: {e}")

# ═══════════════════════════════════════════════════
#  Stats
# ═══════════════════════════════════════════════════
async def stats_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    report = await service.stats(update.effective_user.id)
    await _respond(update, format_stats(report), reply_markup=main_keyboard())

# ═══════════════════════════════════════════════════
#  Daily reminder
# ═══════════════════════════════════════════════════
async def send_daily_reminders(context: ContextTypes.DEFAULT_TYPE):
    logger.info("Sending daily reminders...")
    try:
        user_ids = await db.all_user_ids()
    except StorageUnavailable as e:
        logger.error(f"daily reminders skipped: {e}")
        return
    sent = 0
    for user_id in user_ids:
        try:
            due = await service.due_words(user_id)
            if not due:
                continue
            await context.bot.send_message(
                chat_id=user_id,
                text=(
                    f"🔔 Reminder! You have {len(due)} word{'s' if len(due) != 1 else ''} "
                    f"to review. Use /review to see them or /quiz to practise."
                ),
                reply_markup=main_keyboard(),
            )
            sent += 1
        except (TelegramError, VocabularyError) as e:
            logger.warning(f"reminder for user {user_id} failed: {e}")
    logger.info(f"daily reminders sent: {sent}/{len(user_ids)}")

# ═══════════════════════════════════════════════════
#  Error handler
# ═══════════════════════════════════════════════════
async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE):
    logger.error("Exception while handling an update:", exc_info=context.error)
    if isinstance(context.error, StorageUnavailable):
        text = "⚠️ The word storage is unavailable right now. Please try again in a minute."
    else:
        text = "⚠️ Sorry, something went wrong. Please try again."
    try:
        if isinstance(update, Update) and update.effective_chat:
            await context.bot.send_message(chat_id=update.effective_chat.id, text=text)
    except TelegramError as e:
        logger.error(f"error handler failed to notify user: {e}")

# ═══════════════════════════════════════════════════
#  main
# ═══════════════════════════════════════════════════
async def _post_init(app: Application):
    await db.init()


async def _post_shutdown(app: Application):
    await db.close()


def build_application(token: str) -> Application:
    app = (
        Application.builder()
        .token(token)
        .post_init(_post_init)
        .post_shutdown(_post_shutdown)
        .build()
    )

    for cmd, fn in [
        ("start",  start),      ("help",   help_cmd),
        ("add",    add_cmd),    ("words",  words_cmd),
        ("quiz",   quiz_cmd),   ("review", review_cmd),
        ("delete", delete_cmd), ("stats",  stats_cmd),
    ]:
        app.add_handler(CommandHandler(cmd, fn))

    for pattern, fn in [
        (r"^quiz_\d+_\d+$",  quiz_answer),
        (r"^menu_quiz$",     quiz_cmd),
        (r"^menu_review$",   review_cmd),
        (r"^menu_words$",    words_cmd),
        (r"^menu_stats$",    stats_cmd),
        (r"^menu_back$",     menu_back),
    ]:
        app.add_handler(CallbackQueryHandler(fn, pattern=pattern))

    app.add_error_handler(error_handler)

    app.job_queue.run_daily(
        send_daily_reminders,
        time=time(hour=settings.REMINDER_HOUR, minute=settings.REMINDER_MINUTE, tzinfo=settings.TZ),
        name="daily_reminders",
    )
    return app


def main():
    if not settings.BOT_TOKEN:
        raise ValueError("BOT_TOKEN must be set in the environment")
    app = build_application(settings.BOT_TOKEN)
    logger.info("🚀 Vocabulary trainer bot started")
    app.run_polling(drop_pending_updates=True)


if __name__ == "__main__":
    main()
