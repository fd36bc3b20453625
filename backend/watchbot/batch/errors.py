from __future__ import annotations

from watchbot.common.exceptions import ApiException


class AlreadyOpenError(ApiException):
    def __init__(self, user_id: int) -> None:
        super().__init__(
            status_code=409,
            code=40901,
            message="A batch is already open",
            details={"userId": user_id},
        )
        self.user_id = user_id


class NoOpenBatchError(ApiException):
    def __init__(self, user_id: int) -> None:
        super().__init__(
            status_code=409,
            code=40902,
            message="No open batch",
            details={"userId": user_id},
        )
        self.user_id = user_id
