from filebox.models.user import User
from filebox.models.file import File
from filebox.models.share import Share, ShareState
from filebox.models.session import AuthSession

__all__ = ["User", "File", "Share", "ShareState", "AuthSession"]
