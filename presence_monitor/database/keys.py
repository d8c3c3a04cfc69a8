"""Key layout of the records kept in the key-value store."""


def metric_prefix(device_id: str) -> str:
    return f"metric:{device_id}:"


def metric_key(device_id: str, suffix: str) -> str:
    return f"{metric_prefix(device_id)}{suffix}"


def latest_key(device_id: str) -> str:
    return f"latest:{device_id}"


def alert_key(alert_id: str) -> str:
    return f"alert:{alert_id}"


def user_alerts_key(user_id: str) -> str:
    return f"user_alerts:{user_id}"


def user_key(user_id: str) -> str:
    return f"user:{user_id}"


def user_email_key(email: str) -> str:
    return f"user_email:{email.strip().lower()}"


def device_key(device_id: str) -> str:
    return f"device:{device_id}"


def user_devices_key(user_id: str) -> str:
    return f"user_devices:{user_id}"


def device_users_key(device_id: str) -> str:
    return f"device_users:{device_id}"
