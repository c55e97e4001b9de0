"""Checkout errors - each carries the code reported in CheckoutResult.error_code"""


class CheckoutError(Exception):
    code = "CheckoutFailed"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ProductNotFoundError(CheckoutError):
    code = "ProductNotFound"


class UnsupportedProductTypeForAppointmentError(CheckoutError):
    code = "UnsupportedProductTypeForAppointment"


class UnsupportedProductTypeError(CheckoutError):
    code = "UnsupportedProductType"


class CartNotSpecifiedError(CheckoutError):
    code = "CartNotSpecified"


class CartEmptyOrNotFoundError(CheckoutError):
    code = "CartEmptyOrNotFound"


class AppointmentDataRequiredError(CheckoutError):
    code = "AppointmentDataRequired"


class AppointmentNotFoundError(CheckoutError):
    code = "AppointmentNotFound"


class AlreadyPaidError(CheckoutError):
    code = "AlreadyPaid"


class PaymentSimulationDisabledError(CheckoutError):
    code = "TestModeDisabled"
