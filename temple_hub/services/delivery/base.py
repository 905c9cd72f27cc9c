from abc import ABC, abstractmethod


class OtpSender(ABC):
    """
    Delivers a verification code to one target.

    Contract:
    - Input: target (phone number or email address) and the 6-digit code
    - Raises OtpDeliveryError when the provider cannot be reached or rejects
      the message; never swallows the failure
    """

    name = "base"

    @abstractmethod
    def send(self, target: str, code: str) -> None:
        raise NotImplementedError
