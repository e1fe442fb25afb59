from tempero_pay.client.boleto_flow import BoletoCheckout, BoletoInstructions
from tempero_pay.client.card_gateways import CardCheckoutAction, CardGatewayDispatcher
from tempero_pay.client.cart import Cart
from tempero_pay.client.customer import CustomerInfo
from tempero_pay.client.errors import CheckoutValidationError, RemoteCallError, StatementParseError
from tempero_pay.client.functions import FunctionsClient
from tempero_pay.client.pix_flow import PixCheckout, PixState
from tempero_pay.client.statement_import import StatementImporter

__all__ = [
    "BoletoCheckout",
    "BoletoInstructions",
    "CardCheckoutAction",
    "CardGatewayDispatcher",
    "Cart",
    "CheckoutValidationError",
    "CustomerInfo",
    "FunctionsClient",
    "PixCheckout",
    "PixState",
    "RemoteCallError",
    "StatementImporter",
    "StatementParseError",
]
