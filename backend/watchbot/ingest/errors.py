from __future__ import annotations

from watchbot.common.exceptions import ApiException


class UserNotAllowedError(ApiException):
    def __init__(self, external_user_id: int) -> None:
        super().__init__(
            status_code=403,
            code=40301,
            message="User is not allowed",
            details={"externalUserId": external_user_id},
        )
        self.external_user_id = external_user_id
