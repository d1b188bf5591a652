"""
bot.py — Telegram bot handlers.

All visual formatting is delegated to style.py.
All search state is kept in-memory per chat (assistant.UserSession);
accounts and the per-chat session pointer live in the SQLite key/value store.

Searching, capturing and profile edits are only available while signed in.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Message, Update
from telegram.error import TelegramError
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

import assistant
import config
import database as db
import history
import media_capture
import style
from account_store import (
    DEFAULT_SESSION_KEY,
    AccountError,
    AccountStore,
    SQLiteKeyValueStore,
)
from assistant import UserSession, get_session
from models import Account, ImagePayload

logger = logging.getLogger(__name__)

# ── Callback data ──────────────────────────────────────────────────────────────
CB_SEARCH   = "search"
CB_RETRY    = "search:retry"
CB_RETAKE   = "camera:retake"
CB_AVATAR   = "profile:avatar"
CB_MORE     = "results:more"
CB_NEW      = "results:new"
CB_HISTORY  = "hist:"          # + entry id

HISTORY_BUTTONS = 20

_kv = SQLiteKeyValueStore()


def accounts_for(chat_id: int) -> AccountStore:
    """Each chat is its own client instance with its own session pointer."""
    return AccountStore(_kv, session_key=f"{DEFAULT_SESSION_KEY}:{chat_id}")


async def _signed_in(update: Update) -> Optional[Account]:
    """Return the chat's account, or tell the user to log in and return None."""
    account = await accounts_for(update.effective_chat.id).load_session()
    if account is None:
        await update.effective_message.reply_text(style.login_required(), parse_mode="MarkdownV2")
    return account


# ── Keyboards ──────────────────────────────────────────────────────────────────

def image_keyboard(from_camera: bool = False) -> InlineKeyboardMarkup:
    rows = [
        [InlineKeyboardButton("🔎  Search Shops", callback_data=CB_SEARCH)],
        [InlineKeyboardButton("🖼️  Use as profile picture", callback_data=CB_AVATAR)],
    ]
    if from_camera:
        rows.append([InlineKeyboardButton("📷  Retake", callback_data=CB_RETAKE)])
    return InlineKeyboardMarkup(rows)


def _is_web_link(link) -> bool:
    return isinstance(link, str) and link.lower().startswith(("http://", "https://"))


def results_keyboard(session: UserSession) -> InlineKeyboardMarkup:
    """One URL button per visible listing, then show-more / new-search."""
    rows = []
    for i, item in enumerate(session.visible_items(), 1):
        if not _is_web_link(item.link):
            continue
        label = str(item.store_name or "Online Store")[:40]
        rows.append([InlineKeyboardButton(f"🛒  #{i}  {label}", url=item.link)])
    if session.has_more:
        rows.append([InlineKeyboardButton("⬇️  Show More Results", callback_data=CB_MORE)])
    rows.append([InlineKeyboardButton("🆕  New Search", callback_data=CB_NEW)])
    return InlineKeyboardMarkup(rows)


def error_keyboard(session: UserSession) -> InlineKeyboardMarkup:
    rows = []
    if session.image is not None:
        rows.append([InlineKeyboardButton("🔁  Try again", callback_data=CB_RETRY)])
    rows.append([InlineKeyboardButton("🆕  New Search", callback_data=CB_NEW)])
    return InlineKeyboardMarkup(rows)


def history_keyboard(account: Account) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([
        [InlineKeyboardButton(
            f"{i}. {entry.result.identified_product[:40]}",
            callback_data=f"{CB_HISTORY}{entry.id}",
        )]
        for i, entry in enumerate(account.history[:HISTORY_BUTTONS], 1)
    ])


# ── Rendering ──────────────────────────────────────────────────────────────────

async def _render_outcome(msg: Message, session: UserSession) -> None:
    """Replace the loading message with either the results or the error banner."""
    if session.error is not None:
        await msg.edit_text(
            style.error_search_failed(session.error),
            parse_mode="MarkdownV2",
            reply_markup=error_keyboard(session),
        )
        return
    await msg.edit_text(
        style.results_page(
            session.result,
            session.visible_items(),
            run=session.last_run,
            show_cost=config.SHOW_COST_INFO,
        ),
        parse_mode="MarkdownV2",
        reply_markup=results_keyboard(session),
        disable_web_page_preview=True,
    )


async def _run_search(msg: Message, coro) -> bool:
    """Await a search coroutine, mapping setup failures to chat messages."""
    try:
        await coro
    except AccountError:
        await msg.edit_text(style.login_required(), parse_mode="MarkdownV2")
        return False
    except RuntimeError as exc:
        logger.error("Search could not start: %s", exc)
        await msg.edit_text(style.error_not_configured(), parse_mode="MarkdownV2")
        return False
    return True


async def _search_pending_image(message: Message, chat_id: int) -> None:
    session = get_session(chat_id)
    if session.is_loading:
        await message.reply_text(style.search_in_progress(), parse_mode="MarkdownV2")
        return
    if session.image is None:
        await message.reply_text(style.session_expired(), parse_mode="MarkdownV2")
        return

    accounts = accounts_for(chat_id)
    account = await accounts.load_session()
    location = account.location if account else None
    msg = await message.reply_text(style.loading_image_search(location), parse_mode="MarkdownV2")
    if await _run_search(msg, assistant.run_image_search(session, accounts)):
        await _render_outcome(msg, session)


# ── Auth handlers ──────────────────────────────────────────────────────────────

async def _delete_credentials_message(update: Update) -> None:
    try:
        await update.message.delete()
    except TelegramError as exc:
        logger.debug("Could not delete credentials message: %s", exc)


async def cmd_signup(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    args = context.args or []
    if len(args) != 2:
        await update.message.reply_text(style.auth_usage("signup"), parse_mode="MarkdownV2")
        return
    await _delete_credentials_message(update)

    email, password = args
    try:
        await accounts_for(update.effective_chat.id).create_account(email, password)
    except AccountError as exc:
        await update.effective_chat.send_message(style.auth_error(str(exc)), parse_mode="MarkdownV2")
        return
    get_session(update.effective_chat.id).reset()
    await update.effective_chat.send_message(style.signed_up(email), parse_mode="MarkdownV2")


async def cmd_login(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    args = context.args or []
    if len(args) != 2:
        await update.message.reply_text(style.auth_usage("login"), parse_mode="MarkdownV2")
        return
    await _delete_credentials_message(update)

    email, password = args
    try:
        await accounts_for(update.effective_chat.id).authenticate(email, password)
    except AccountError as exc:
        await update.effective_chat.send_message(style.auth_error(str(exc)), parse_mode="MarkdownV2")
        return
    get_session(update.effective_chat.id).reset()
    await update.effective_chat.send_message(style.logged_in(email), parse_mode="MarkdownV2")


async def cmd_logout(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await accounts_for(update.effective_chat.id).end_session()
    get_session(update.effective_chat.id).reset()
    await update.message.reply_text(style.logged_out(), parse_mode="MarkdownV2")


# ── General commands ───────────────────────────────────────────────────────────

async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    account = await accounts_for(update.effective_chat.id).load_session()
    await update.message.reply_text(
        style.welcome(account.email if account else None), parse_mode="MarkdownV2"
    )


async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await update.message.reply_text(style.help_text(), parse_mode="MarkdownV2")


async def cmd_profile(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    account = await _signed_in(update)
    if account is None:
        return
    caption = style.profile_card(account)
    if account.profile_pic:
        try:
            picture = ImagePayload.from_data_url(account.profile_pic)
        except ValueError:
            logger.warning("Stored profile picture for %s is not a data URL", account.email)
        else:
            await update.message.reply_photo(
                photo=picture.to_bytes(), caption=caption, parse_mode="MarkdownV2"
            )
            return
    await update.message.reply_text(caption, parse_mode="MarkdownV2")


async def cmd_location(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    account = await _signed_in(update)
    if account is None:
        return
    location = " ".join(context.args or []).strip()
    if not location:
        await update.message.reply_text(style.location_current(account.location), parse_mode="MarkdownV2")
        return
    await accounts_for(update.effective_chat.id).update_location(account.email, location)
    await update.message.reply_text(style.location_saved(location), parse_mode="MarkdownV2")


async def cmd_history(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    account = await _signed_in(update)
    if account is None:
        return
    await update.message.reply_text(
        style.history_list(account),
        parse_mode="MarkdownV2",
        reply_markup=history_keyboard(account) if account.history else None,
    )


# ── Image input ────────────────────────────────────────────────────────────────

async def _accept_image(update: Update, image_bytes: bytes) -> None:
    try:
        payload = media_capture.payload_from_bytes(image_bytes)
    except media_capture.UnsupportedImage:
        await update.message.reply_text(style.not_an_image(), parse_mode="MarkdownV2")
        return

    session = get_session(update.effective_chat.id)
    if session.is_loading:
        await update.message.reply_text(style.search_in_progress(), parse_mode="MarkdownV2")
        return
    session.reset()
    session.image = payload
    await update.message.reply_text(
        style.image_ready(), parse_mode="MarkdownV2", reply_markup=image_keyboard()
    )


async def handle_photo(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if await _signed_in(update) is None:
        return
    photo      = update.message.photo[-1]
    photo_file = await context.bot.get_file(photo.file_id)
    await _accept_image(update, bytes(await photo_file.download_as_bytearray()))


async def handle_image_document(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if await _signed_in(update) is None:
        return
    doc_file = await context.bot.get_file(update.message.document.file_id)
    await _accept_image(update, bytes(await doc_file.download_as_bytearray()))


async def _capture_from_camera(message: Message, chat_id: int) -> None:
    if not config.CAMERA_ENABLED:
        await message.reply_text(style.error_camera_disabled(), parse_mode="MarkdownV2")
        return
    session = get_session(chat_id)
    if session.is_loading:
        await message.reply_text(style.search_in_progress(), parse_mode="MarkdownV2")
        return
    session.reset()

    try:
        payload = await asyncio.to_thread(
            media_capture.capture_still, config.CAMERA_INDEX, config.CAMERA_JPEG_QUALITY
        )
    except media_capture.DeviceUnavailable as exc:
        logger.warning("Camera error: %s", exc)
        await message.reply_text(style.error_camera_unavailable(), parse_mode="MarkdownV2")
        return

    session.image = payload
    await message.reply_photo(
        photo=payload.to_bytes(),
        caption=style.image_ready(),
        parse_mode="MarkdownV2",
        reply_markup=image_keyboard(from_camera=True),
    )


async def cmd_camera(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if await _signed_in(update) is None:
        return
    await _capture_from_camera(update.message, update.effective_chat.id)


# ── Text search ────────────────────────────────────────────────────────────────

async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    account = await _signed_in(update)
    if account is None:
        return
    query = (update.message.text or "").strip()
    if not query:
        return

    chat_id = update.effective_chat.id
    session = get_session(chat_id)
    if session.is_loading:
        await update.message.reply_text(style.search_in_progress(), parse_mode="MarkdownV2")
        return

    msg = await update.message.reply_text(
        style.loading_text_search(query, account.location), parse_mode="MarkdownV2"
    )
    if await _run_search(msg, assistant.run_text_search(session, accounts_for(chat_id), query)):
        await _render_outcome(msg, session)


# ── Callbacks ──────────────────────────────────────────────────────────────────

async def handle_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    await query.answer()
    chat_id = update.effective_chat.id
    session = get_session(chat_id)
    data    = query.data

    account = await accounts_for(chat_id).load_session()
    if account is None:
        await query.message.reply_text(style.login_required(), parse_mode="MarkdownV2")
        return

    if data in (CB_SEARCH, CB_RETRY):
        await _search_pending_image(query.message, chat_id)
        return

    if data == CB_RETAKE:
        await _capture_from_camera(query.message, chat_id)
        return

    if data == CB_AVATAR:
        if session.image is None:
            await query.message.reply_text(style.session_expired(), parse_mode="MarkdownV2")
            return
        await accounts_for(chat_id).update_profile_picture(account.email, session.image.data_url)
        await query.message.reply_text(style.profile_picture_saved(), parse_mode="MarkdownV2")
        return

    if data == CB_MORE:
        if session.result is None:
            return
        session.show_more()
        await _render_outcome(query.message, session)
        return

    if data == CB_NEW:
        session.reset()
        await query.edit_message_reply_markup(reply_markup=None)
        await query.message.reply_text(style.welcome(account.email), parse_mode="MarkdownV2")
        return

    if data.startswith(CB_HISTORY):
        entry = history.find_entry(account, data[len(CB_HISTORY):])
        if entry is None:
            await query.message.reply_text(style.history_entry_missing(), parse_mode="MarkdownV2")
            return
        session.reset()
        session.result = entry.result
        try:
            preview = ImagePayload.from_data_url(entry.preview_src)
        except ValueError:
            logger.warning("History entry %s has no usable preview", entry.id)
        else:
            await query.message.reply_photo(photo=preview.to_bytes())
        msg = await query.message.reply_text(style.fmt_timestamp(entry.timestamp))
        await _render_outcome(msg, session)
        return


# ── App factory ────────────────────────────────────────────────────────────────

async def _post_init(application: Application) -> None:
    await db.init_db()


def build_application() -> Application:
    if not config.TELEGRAM_BOT_TOKEN:
        raise RuntimeError("TELEGRAM_BOT_TOKEN is not set.")

    app = (
        Application.builder()
        .token(config.TELEGRAM_BOT_TOKEN)
        .post_init(_post_init)
        .build()
    )

    app.add_handler(CommandHandler("start",    cmd_start))
    app.add_handler(CommandHandler("help",     cmd_help))
    app.add_handler(CommandHandler("signup",   cmd_signup))
    app.add_handler(CommandHandler("login",    cmd_login))
    app.add_handler(CommandHandler("logout",   cmd_logout))
    app.add_handler(CommandHandler("profile",  cmd_profile))
    app.add_handler(CommandHandler("location", cmd_location))
    app.add_handler(CommandHandler("history",  cmd_history))
    app.add_handler(CommandHandler("camera",   cmd_camera))
    app.add_handler(MessageHandler(filters.PHOTO,                   handle_photo))
    app.add_handler(MessageHandler(filters.Document.IMAGE,          handle_image_document))
    app.add_handler(CallbackQueryHandler(handle_callback))
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_text))
    return app
