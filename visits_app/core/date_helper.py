from datetime import date, datetime, time, timezone

from dateutil.relativedelta import relativedelta


def combine_date_time(day: date, at: time) -> datetime:
    return datetime.combine(day, at)


def days_from(day: date, days: int) -> date:
    return day + relativedelta(days=days)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def days_ago(days: int) -> datetime:
    return utcnow() - relativedelta(days=days)


def seconds_ago(seconds: int) -> datetime:
    return utcnow() - relativedelta(seconds=seconds)
