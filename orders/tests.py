import json
from datetime import date, time
from decimal import Decimal

from django.test import TestCase
from django.urls import reverse

from accounts.models import Address, Customer
from services.models import Service
from .models import Order
from .services import BookingRefs, create_booking


class OrderApiTests(TestCase):
    def setUp(self):
        self.customer = Customer.objects.create(mobile='9876543210', name='Asha')
        self.service = Service.objects.create(name='Full Home Cleaning', price=Decimal('2499.00'))
        self.address = Address.objects.create(
            customer=self.customer, address_line_1='12 MG Road', city='Jaipur', state='Rajasthan', postal_code='302001'
        )

    def payload(self, **overrides):
        body = {
            'userId': str(self.customer.pk),
            'serviceId': str(self.service.pk),
            'addressId': str(self.address.pk),
            'scheduledDate': '2026-01-05',
            'scheduledTime': '10:30',
        }
        body.update(overrides)
        return body

    def _create(self, payload):
        return self.client.post(reverse('orders:create'), data=json.dumps(payload), content_type='application/json')

    def test_create_prices_from_service(self):
        resp = self._create(self.payload(amount=1))
        self.assertEqual(resp.status_code, 201)
        order = resp.json()['order']
        self.assertEqual(order['totalAmount'], '2499.00')
        self.assertEqual(order['status'], 'pending')
        self.assertEqual(order['paymentStatus'], 'pending')
        self.assertEqual(order['scheduledTime'], '10:30')
        self.assertIsNone(order['orderId'])

    def test_foreign_address_is_forbidden(self):
        other = Customer.objects.create(mobile='9123456780')
        foreign = Address.objects.create(
            customer=other, address_line_1='1 Park St', city='Kolkata', state='WB', postal_code='700016'
        )
        resp = self._create(self.payload(addressId=str(foreign.pk)))
        self.assertEqual(resp.status_code, 403)
        self.assertFalse(Order.objects.exists())

    def test_inactive_service(self):
        self.service.is_active = False
        self.service.save()
        resp = self._create(self.payload())
        self.assertEqual(resp.status_code, 404)

    def test_invalid_time(self):
        resp = self._create(self.payload(scheduledTime='half past ten'))
        self.assertEqual(resp.status_code, 400)
        self.assertIn('scheduledTime', resp.json()['errors'])

    def test_customer_orders_and_detail(self):
        order = create_booking(
            BookingRefs(customer=self.customer, service=self.service, address=self.address),
            amount=self.service.price,
            scheduled_date=date(2026, 1, 5),
            scheduled_time=time(9, 0),
        )

        resp = self.client.get(reverse('orders:customer_orders', args=[self.customer.pk]))
        self.assertEqual(resp.json()['count'], 1)
        listed = resp.json()['orders'][0]
        self.assertEqual(listed['items'][0]['service']['name'], 'Full Home Cleaning')
        self.assertEqual(listed['address']['city'], 'Jaipur')
        self.assertIsNone(listed['transaction'])

        resp = self.client.get(reverse('orders:detail', args=[order.pk]))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()['order']['user']['name'], 'Asha')

    def test_unknown_order(self):
        resp = self.client.get(reverse('orders:detail', args=['00000000-0000-0000-0000-000000000000']))
        self.assertEqual(resp.status_code, 404)


class OrderModelTests(TestCase):
    def test_total_is_subtotal_minus_discount(self):
        customer = Customer.objects.create(mobile='9876543210')
        order = Order.objects.create(
            customer=customer,
            subtotal=Decimal('1000.00'),
            discount_amount=Decimal('150.00'),
            total_amount=Decimal('0'),
            scheduled_date=date(2026, 1, 5),
            scheduled_time=time(11, 0),
        )
        self.assertEqual(order.total_amount, Decimal('850.00'))
