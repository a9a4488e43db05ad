"""Taxonomia de erros da aplicação.

Cada erro carrega:
- code: código estável exposto no envelope (`error.code`)
- status_code: HTTP correspondente
- message: mensagem interna (diagnóstico, vai para logs)
- user_message(locale): texto amigável localizado (en/ja)
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from adstudio.domain.enums import Locale


class ErrorCode(StrEnum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    EMPTY_MESSAGE = "EMPTY_MESSAGE"
    INVALID_JOB_ID = "INVALID_JOB_ID"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
    INVALID_HANDOFF_ROUTE = "INVALID_HANDOFF_ROUTE"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    BUDGET_EXCEEDED = "BUDGET_EXCEEDED"
    INSUFFICIENT_BUDGET = "INSUFFICIENT_BUDGET"
    UNAUTHORIZED = "UNAUTHORIZED"
    JOB_NOT_FOUND = "JOB_NOT_FOUND"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    HANDOFF_NOT_FOUND = "HANDOFF_NOT_FOUND"
    JOB_EXPIRED = "JOB_EXPIRED"
    CANNOT_CANCEL = "CANNOT_CANCEL"
    NO_PENDING_STRATEGY = "NO_PENDING_STRATEGY"
    SESSION_ERROR = "SESSION_ERROR"
    HANDOFF_CONFLICT = "HANDOFF_CONFLICT"
    HANDOFF_INCOMPLETE = "HANDOFF_INCOMPLETE"
    CANCELLATION_FAILED = "CANCELLATION_FAILED"
    GALLERY_FETCH_ERROR = "GALLERY_FETCH_ERROR"
    STORE_ERROR = "STORE_ERROR"
    VEO_API_ERROR = "VEO_API_ERROR"
    AI_API_ERROR = "AI_API_ERROR"
    STORAGE_ERROR = "STORAGE_ERROR"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


_USER_MESSAGES: dict[ErrorCode, dict[Locale, str]] = {
    ErrorCode.VALIDATION_ERROR: {
        Locale.EN: "Please check your input and try again.",
        Locale.JA: "入力内容を確認して、もう一度お試しください。",
    },
    ErrorCode.EMPTY_MESSAGE: {
        Locale.EN: "Please enter a message.",
        Locale.JA: "メッセージを入力してください。",
    },
    ErrorCode.INVALID_JOB_ID: {
        Locale.EN: "The video job ID is invalid.",
        Locale.JA: "動画ジョブIDが無効です。",
    },
    ErrorCode.FILE_TOO_LARGE: {
        Locale.EN: "The image is too large. Please upload a file under 10MB.",
        Locale.JA: "画像サイズが大きすぎます。10MB以下のファイルをアップロードしてください。",
    },
    ErrorCode.UNSUPPORTED_FORMAT: {
        Locale.EN: "Unsupported image format. Please use JPEG, PNG or WebP.",
        Locale.JA: "サポートされていない画像形式です。JPEG、PNG、WebPをご使用ください。",
    },
    ErrorCode.INVALID_HANDOFF_ROUTE: {
        Locale.EN: "This handoff is not supported.",
        Locale.JA: "この引き継ぎはサポートされていません。",
    },
    ErrorCode.RATE_LIMIT_EXCEEDED: {
        Locale.EN: "Too many requests. Please wait a moment and try again.",
        Locale.JA: "リクエストが多すぎます。しばらく待ってから再度お試しください。",
    },
    ErrorCode.BUDGET_EXCEEDED: {
        Locale.EN: "The service budget has been reached. Please try again later.",
        Locale.JA: "サービスの予算上限に達しました。後でもう一度お試しください。",
    },
    ErrorCode.INSUFFICIENT_BUDGET: {
        Locale.EN: "Not enough budget remains for this request.",
        Locale.JA: "このリクエストに必要な予算が不足しています。",
    },
    ErrorCode.UNAUTHORIZED: {
        Locale.EN: "You are not authorized to access this resource.",
        Locale.JA: "このリソースへのアクセス権限がありません。",
    },
    ErrorCode.JOB_NOT_FOUND: {
        Locale.EN: "Video job not found.",
        Locale.JA: "動画ジョブが見つかりません。",
    },
    ErrorCode.SESSION_NOT_FOUND: {
        Locale.EN: "Your session was not found or has expired. Please start again.",
        Locale.JA: "セッションが見つからないか期限切れです。最初からやり直してください。",
    },
    ErrorCode.HANDOFF_NOT_FOUND: {
        Locale.EN: "Handoff not found.",
        Locale.JA: "引き継ぎが見つかりません。",
    },
    ErrorCode.JOB_EXPIRED: {
        Locale.EN: "This video job has expired. Please generate a new video.",
        Locale.JA: "この動画ジョブは期限切れです。新しい動画を生成してください。",
    },
    ErrorCode.CANNOT_CANCEL: {
        Locale.EN: "This video can no longer be cancelled.",
        Locale.JA: "この動画はキャンセルできません。",
    },
    ErrorCode.NO_PENDING_STRATEGY: {
        Locale.EN: "There is no strategy update waiting for confirmation.",
        Locale.JA: "確認待ちの戦略更新はありません。",
    },
    ErrorCode.SESSION_ERROR: {
        Locale.EN: "Your session was updated elsewhere. Please retry.",
        Locale.JA: "セッションが別の場所で更新されました。再試行してください。",
    },
    ErrorCode.HANDOFF_CONFLICT: {
        Locale.EN: "This handoff was already recorded.",
        Locale.JA: "この引き継ぎはすでに記録されています。",
    },
    ErrorCode.HANDOFF_INCOMPLETE: {
        Locale.EN: "More information is needed before moving to the next step.",
        Locale.JA: "次のステップに進む前に、追加の情報が必要です。",
    },
    ErrorCode.CANCELLATION_FAILED: {
        Locale.EN: "We could not cancel the video. Please try again.",
        Locale.JA: "動画をキャンセルできませんでした。もう一度お試しください。",
    },
    ErrorCode.GALLERY_FETCH_ERROR: {
        Locale.EN: "We could not load the gallery. Please try again.",
        Locale.JA: "ギャラリーを読み込めませんでした。もう一度お試しください。",
    },
    ErrorCode.STORE_ERROR: {
        Locale.EN: "A storage error occurred. Please try again.",
        Locale.JA: "保存中にエラーが発生しました。もう一度お試しください。",
    },
    ErrorCode.VEO_API_ERROR: {
        Locale.EN: "The video service is temporarily unavailable. Please try again shortly.",
        Locale.JA: "動画サービスが一時的に利用できません。しばらくしてから再度お試しください。",
    },
    ErrorCode.AI_API_ERROR: {
        Locale.EN: "The AI service is temporarily unavailable. Please try again shortly.",
        Locale.JA: "AIサービスが一時的に利用できません。しばらくしてから再度お試しください。",
    },
    ErrorCode.STORAGE_ERROR: {
        Locale.EN: "We could not store your file. Please try again.",
        Locale.JA: "ファイルを保存できませんでした。もう一度お試しください。",
    },
    ErrorCode.INTERNAL_SERVER_ERROR: {
        Locale.EN: "Something went wrong. Please try again.",
        Locale.JA: "問題が発生しました。もう一度お試しください。",
    },
}


def user_message(code: ErrorCode | str, locale: Locale | str = Locale.EN) -> str:
    """Mensagem amigável localizada; códigos desconhecidos caem no genérico."""
    try:
        resolved_code = ErrorCode(code)
    except ValueError:
        resolved_code = ErrorCode.INTERNAL_SERVER_ERROR
    try:
        resolved_locale = Locale(locale)
    except ValueError:
        resolved_locale = Locale.EN
    return _USER_MESSAGES[resolved_code][resolved_locale]


class AppError(Exception):
    """Erro base com código estável e status HTTP."""

    code: ErrorCode = ErrorCode.INTERNAL_SERVER_ERROR
    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}
        self.headers = headers or {}

    def user_message(self, locale: Locale | str = Locale.EN) -> str:
        return user_message(self.code, locale)


class ValidationError(AppError):
    code = ErrorCode.VALIDATION_ERROR
    status_code = 400


class UnauthorizedError(AppError):
    code = ErrorCode.UNAUTHORIZED
    status_code = 401


class RateLimitedError(AppError):
    code = ErrorCode.RATE_LIMIT_EXCEEDED
    status_code = 429


class BudgetExceededError(AppError):
    code = ErrorCode.BUDGET_EXCEEDED
    status_code = 402


class InsufficientBudgetError(BudgetExceededError):
    code = ErrorCode.INSUFFICIENT_BUDGET


class NotFoundError(AppError):
    status_code = 404


class JobNotFoundError(NotFoundError):
    code = ErrorCode.JOB_NOT_FOUND


class SessionNotFoundError(NotFoundError):
    code = ErrorCode.SESSION_NOT_FOUND


class HandoffNotFoundError(NotFoundError):
    code = ErrorCode.HANDOFF_NOT_FOUND


class ExpiredError(AppError):
    status_code = 410


class JobExpiredError(ExpiredError):
    code = ErrorCode.JOB_EXPIRED


class ConflictError(AppError):
    status_code = 409


class CannotCancelError(ConflictError):
    code = ErrorCode.CANNOT_CANCEL


class NoPendingStrategyError(ConflictError):
    code = ErrorCode.NO_PENDING_STRATEGY


class SessionConflictError(ConflictError):
    code = ErrorCode.SESSION_ERROR


class HandoffConflictError(ConflictError):
    code = ErrorCode.HANDOFF_CONFLICT


class HandoffRejectedError(AppError):
    code = ErrorCode.HANDOFF_INCOMPLETE
    status_code = 422


class UpstreamError(AppError):
    """Falha de serviço externo (Veo, Gemini, Storage): 502, cliente faz retry."""

    code = ErrorCode.VEO_API_ERROR
    status_code = 502


class StoreError(AppError):
    """Falha de persistência (Firestore)."""

    code = ErrorCode.STORE_ERROR
    status_code = 503
