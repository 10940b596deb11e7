from .common import generate_session_id, to_multidict, utc_timestamp

__all__ = ["generate_session_id", "utc_timestamp", "to_multidict"]
