import datetime


def utcnow() -> datetime.datetime:
    """
    Naive UTC timestamp, the only representation persisted to the database
    """
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


def as_aware_utc(dt: datetime.datetime) -> datetime.datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=datetime.timezone.utc)
    return dt.astimezone(datetime.timezone.utc)


def mask_destination(destination: str | None) -> str:
    """
    Safe for logs: +1*******4567, a***@example.com
    """
    if not destination:
        return ''
    if '@' in destination:
        local, _, domain = destination.partition('@')
        return f'{local[:1]}***@{domain}'
    if len(destination) <= 6:
        return '*' * len(destination)
    return f'{destination[:2]}{"*" * (len(destination) - 6)}{destination[-4:]}'
