from ...shared.schemas import TrimmedRequest


class AdminDeleteRequest(TrimmedRequest):
    postId: str = ""
    key: str = ""
