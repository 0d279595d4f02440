"""
Stock movements for pharmacy products.
"""
import logging

from django.db import transaction
from django.db.models import F

from common.exceptions import NotFoundError, ValidationFailedError

from .models import PharmacyProduct

logger = logging.getLogger(__name__)


class InsufficientStockError(ValidationFailedError):
    default_detail = 'Insufficient stock.'


class InventoryService:

    @staticmethod
    @transaction.atomic
    def deduct(*, tenant_id, product_id, quantity):
        """
        Remove ``quantity`` units of a product from stock.

        The decrement is a single conditional UPDATE, so two concurrent sales
        can never take the on-hand quantity below zero.
        Returns the remaining quantity.
        """
        if quantity < 1:
            raise ValidationFailedError('Quantity must be at least 1.', details={'quantity': quantity})

        products = PharmacyProduct.objects.filter(tenant_id=tenant_id, pk=product_id)
        updated = products.filter(quantity__gte=quantity).update(quantity=F('quantity') - quantity)

        if not updated:
            product = products.only('product_name', 'quantity').first()
            if product is None:
                raise NotFoundError(f'Product {product_id} not found.')
            raise InsufficientStockError(
                f'Insufficient stock for {product.product_name}. Available: {product.quantity}',
                details={'product_id': product_id, 'available': product.quantity, 'requested': quantity},
            )

        remaining = products.values_list('quantity', flat=True).get()
        logger.info(f"Stock deducted - tenant={tenant_id} product={product_id} qty={quantity} remaining={remaining}")
        return remaining
