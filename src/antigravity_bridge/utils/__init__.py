from .paths import get_default_root, get_logs_dir, get_transaction_logs_dir

__all__ = ["get_default_root", "get_logs_dir", "get_transaction_logs_dir"]
