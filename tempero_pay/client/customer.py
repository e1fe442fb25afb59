from __future__ import annotations

from dataclasses import dataclass

from pydantic import ValidationError

from tempero_pay.client.errors import CheckoutValidationError
from tempero_pay.schemas.checkout import Customer
from tempero_pay.services.tax_id import check_tax_id, only_digits


@dataclass
class CustomerInfo:
    name: str = ""
    email: str = ""
    phone: str = ""
    document: str = ""

    def validated(self, *, require_tax_id: bool = False) -> dict:
        """Confere os campos obrigatórios e devolve o corpo `customer` das procedures."""
        if not self.name.strip() or not self.email.strip():
            raise CheckoutValidationError("Preencha nome e e-mail para continuar", field="name")
        try:
            Customer(name=self.name.strip(), email=self.email.strip())
        except ValidationError:
            raise CheckoutValidationError("E-mail inválido", field="email")

        body = {"name": self.name.strip(), "email": self.email.strip().lower()}
        if self.phone.strip():
            body["phone"] = self.phone.strip()

        if require_tax_id:
            check = check_tax_id(self.document)
            if not check.valid:
                raise CheckoutValidationError(check.message, field="document")
        if self.document.strip():
            body["document"] = only_digits(self.document)
        return body
