"""Reply texts and the command vocabulary the bot recognizes."""

from collections.abc import Sequence
from enum import Enum

from ..models import PostData


class Command(str, Enum):
    """Global commands, accepted in any step."""

    START = "start"
    HELP = "help"
    CANCEL = "cancel"


COMMANDS = {
    "投稿作成": Command.START,
    "new post": Command.START,
    "ヘルプ": Command.HELP,
    "help": Command.HELP,
    "キャンセル": Command.CANCEL,
    "cancel": Command.CANCEL,
    "やめる": Command.CANCEL,
    "中止": Command.CANCEL,
}

AFFIRMATIVE = frozenset({"はい", "yes", "y", "公開", "投稿", "ok"})
NEGATIVE = frozenset({"いいえ", "no", "n", "修正"})

NEW_TAG_PREFIXES = ("新規:", "新規：", "new:")

CONTENT_PREVIEW_LENGTH = 100


def match_command(text: str) -> Command | None:
    """Exact, case-insensitive lookup of a global command."""
    return COMMANDS.get(text.strip().lower())


UNSUPPORTED_MESSAGE_TYPE = (
    "すみません、そのメッセージタイプには対応していません。\n"
    "テキストメッセージまたは画像を送信してください。"
)

START = "新しいブログ投稿を作成しましょう！✨\n\nまず、投稿のタイトルを入力してください。"

ALREADY_IN_PROGRESS = (
    "投稿作成はすでに進行中です。\n"
    "最初からやり直す場合は「キャンセル」と送信してから「投稿作成」と送信してください。"
)

CANCELLED = "投稿作成をキャンセルしました。\n\n新しい投稿を作成するには「投稿作成」と送信してください。"

NOTHING_TO_CANCEL = "キャンセルできる投稿作成が進行中ではありません。"

IDLE_GUIDANCE = (
    "投稿を作成するには「投稿作成」と送信してください。\n"
    "ヘルプが必要な場合は「ヘルプ」と送信してください。"
)

TITLE_EMPTY = "タイトルを入力してください。"
TITLE_TOO_LONG = "タイトルが長すぎます。100文字以内で入力してください。"

CONTENT_EMPTY = "本文を入力してください。"
CONTENT_TOO_LONG = "本文が長すぎます。5000文字以内で入力してください。"
CONTENT_RECEIVED = (
    "本文を受信しました！📝\n\n"
    "次に、投稿に使用する画像を送信してください。\n"
    "（JPEG、PNG、WebP、GIF形式に対応しています）"
)

SEND_IMAGE_INSTEAD = (
    "画像を送信してください。\n"
    "テキストではなく、画像ファイルを送信してください。\n\n"
    "投稿をキャンセルする場合は「キャンセル」と送信してください。"
)

IMAGE_NOT_EXPECTED = (
    "画像は投稿作成中の画像送信段階でのみ受け付けています。\n"
    "「投稿作成」と送信して最初から始めてください。"
)

IMAGE_FAILED = "画像の処理中にエラーが発生しました。もう一度画像を送信してください。"

SUPPORTED_IMAGE_FORMATS = "対応形式: JPEG, PNG, WebP, GIF（最大10MB）"

CONFIRM_PROMPT = (
    "「はい」または「いいえ」で回答してください。\n\n"
    "投稿を公開する場合は「はい」\n"
    "キャンセルする場合は「いいえ」と送信してください。"
)

WELCOME = (
    "つぽブログへようこそ！🎨\n\n"
    "このボットを使って簡単にブログ投稿を作成できます。\n\n"
    "投稿を作成するには「投稿作成」と送信してください。\n"
    "ヘルプが必要な場合は「ヘルプ」と送信してください。"
)

HELP = (
    "つぽブログボット ヘルプ 📚\n\n"
    "【基本コマンド】\n"
    "• 投稿作成 - 新しいブログ投稿を作成\n"
    "• ヘルプ - このヘルプを表示\n"
    "• キャンセル - 投稿作成を中止\n\n"
    "【投稿作成の流れ】\n"
    "1. タイトル入力\n"
    "2. 本文入力\n"
    "3. 画像送信\n"
    "4. タグ選択\n"
    "5. 確認・公開\n\n"
    "【対応ファイル形式】\n"
    "• 画像: JPEG, PNG, WebP, GIF（最大10MB）\n\n"
    "何か問題があれば「投稿作成」と送信して最初からやり直してください。"
)

GENERIC_ERROR = "すみません、エラーが発生しました。「投稿作成」と送信して最初からやり直してください。"

CONCURRENT_UPDATE = "前のメッセージを処理中です。少し待ってからもう一度送信してください。"

TRY_AGAIN_LATER = "外部サービスでエラーが発生しました。しばらく時間をおいて再度お試しください。"

TAG_INSTRUCTIONS = (
    "タグ番号をカンマ区切りで入力してください（例: 1,3,5）\n"
    "新しいタグを追加する場合は「新規:タグ名」と入力してください。"
)


def format_tag_menu(tags: Sequence[str]) -> str:
    """Numbered tag catalogue, one tag per line."""
    return "\n".join(f"{index}. {tag}" for index, tag in enumerate(tags, start=1))


def title_received(title: str) -> str:
    return f"タイトル: \"{title}\"\n\n次に、投稿の本文を入力してください。"


def image_received(tags: Sequence[str]) -> str:
    return (
        "画像を受信しました！📸\n\n"
        "次にタグを選択してください。\n"
        "利用可能なタグ:\n"
        f"{format_tag_menu(tags)}\n\n"
        f"{TAG_INSTRUCTIONS}"
    )


def invalid_tags(tags: Sequence[str]) -> str:
    return f"有効なタグを選択してください。\n\n{format_tag_menu(tags)}\n\n{TAG_INSTRUCTIONS}"


def image_rejected(user_message: str) -> str:
    return f"{user_message}\n\n{SUPPORTED_IMAGE_FORMATS}"


def content_preview(content: str | None) -> str:
    content = content or ""
    if len(content) > CONTENT_PREVIEW_LENGTH:
        return content[:CONTENT_PREVIEW_LENGTH] + "..."
    return content


def confirmation(data: PostData) -> str:
    """Summary of the draft shown before publishing."""
    return (
        "投稿内容を確認してください:\n\n"
        f"📝 タイトル: {data.title}\n\n"
        f"📄 本文: {content_preview(data.content)}\n\n"
        f"🏷️ タグ: {', '.join(data.tags)}\n\n"
        "📸 画像: 添付済み\n\n"
        "この内容で投稿を公開しますか？\n"
        "「はい」で公開、「いいえ」でキャンセルしてください。"
    )


def published(base_url: str) -> str:
    return (
        "投稿を公開しました！🎉\n\n"
        f"ブログURL: {base_url}\n\n"
        "新しい投稿を作成するには「投稿作成」と送信してください。"
    )
