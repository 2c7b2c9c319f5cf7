from datetime import datetime


def get_formatted_timestamp():
    return datetime.now().strftime("%d.%m.%Y %H:%M")


def format_duration(seconds):
    """Format seconds as H:MM:SS (hours unpadded, e.g. 1:05:09)."""
    if isinstance(seconds, bool) or not isinstance(seconds, (int, float)) or seconds < 0:
        return "-:--:--"
    elapsed = int(seconds)
    hours = elapsed // 3600
    minutes = (elapsed % 3600) // 60
    secs = elapsed % 60
    return f"{hours}:{minutes:02}:{secs:02}"
