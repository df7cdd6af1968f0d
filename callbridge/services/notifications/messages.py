"""Localized LINE message texts."""
from datetime import datetime, timedelta, timezone
from typing import Dict

DEFAULT_LANGUAGE = "en"
KST = timezone(timedelta(hours=9))

MESSAGES: Dict[str, Dict[str, str]] = {
    "ko": {
        "incoming_call": "📞 전화가 왔습니다!\n\n60초 이내에 수락해주세요.",
        "accept_call": "전화 받기",
        "timeout": "통화 수락 대기가 종료되었습니다. 5분 후 다시 전화를 받으실 수 있습니다.",
        "timeout_ok": "확인",
        "timeout_retry": "5분 후 다시 받기",
        "retry_scheduled": "✅ 재시도가 예약되었습니다.\n\n{time}에 통화 요청이 도착합니다.\n잠시만 기다려주세요.",
    },
    "en": {
        "incoming_call": "📞 Incoming call!\n\nPlease accept within 60 seconds.",
        "accept_call": "Accept Call",
        "timeout": "Call acceptance timeout. You can receive a call again in 5 minutes.",
        "timeout_ok": "OK",
        "timeout_retry": "Retry in 5 min",
        "retry_scheduled": "✅ Retry scheduled.\n\nYou will receive a call at {time}.\nPlease wait.",
    },
    "ja": {
        "incoming_call": "📞 着信があります！\n\n60秒以内に応答してください。",
        "accept_call": "電話に出る",
        "timeout": "応答の待ち時間が終了しました。5分後にもう一度着信を受け取れます。",
        "timeout_ok": "OK",
        "timeout_retry": "5分後に再着信",
        "retry_scheduled": "✅ 再試行を予約しました。\n\n{time}に着信があります。\nしばらくお待ちください。",
    },
    "zh-TW": {
        "incoming_call": "📞 有來電！\n\n請在60秒內接聽。",
        "accept_call": "接聽",
        "timeout": "接聽等待已結束。您可以在5分鐘後再次接聽來電。",
        "timeout_ok": "確定",
        "timeout_retry": "5分鐘後再接聽",
        "retry_scheduled": "✅ 已預約重試。\n\n來電將於{time}送達。\n請稍候。",
    },
    "th": {
        "incoming_call": "📞 มีสายเรียกเข้า!\n\nกรุณารับสายภายใน 60 วินาที",
        "accept_call": "รับสาย",
        "timeout": "หมดเวลารอรับสายแล้ว คุณสามารถรับสายอีกครั้งได้ใน 5 นาที",
        "timeout_ok": "ตกลง",
        "timeout_retry": "รับสายใหม่ใน 5 นาที",
        "retry_scheduled": "✅ นัดโทรใหม่แล้ว\n\nคุณจะได้รับสายเวลา {time}\nกรุณารอสักครู่",
    },
}


def get_text(language: str, key: str, **kwargs) -> str:
    """Message ``key`` in ``language``, falling back to English."""
    table = MESSAGES.get(language) or MESSAGES[DEFAULT_LANGUAGE]
    return table[key].format(**kwargs)


def format_clock(value: datetime) -> str:
    """HH:MM in Korea time for a naive UTC datetime."""
    return value.replace(tzinfo=timezone.utc).astimezone(KST).strftime("%H:%M")


def invite_text(from_user_name: str, room_id: str, liff_url: str) -> str:
    return (
        f"🎥 {from_user_name} invited you to a video call!\n\n"
        f"Room: {room_id}\n\n"
        f"Tap the link to join:\n{liff_url}"
    )


def room_started_text(room_id: str, display_name: str, started_at: datetime) -> str:
    formatted = started_at.astimezone(KST).strftime("%Y. %m. %d. %H:%M")
    return f"🆕 새 룸이 생성되었습니다!\n\n룸: {room_id}\n생성자: {display_name}\n시간: {formatted}"
