import json

from django.test import TestCase
from django.urls import reverse

from .models import Address, Customer


class SignUpTests(TestCase):
    def _signup(self, payload):
        return self.client.post(reverse('accounts:signup'), data=json.dumps(payload), content_type='application/json')

    def test_new_customer(self):
        resp = self._signup({'mobile': '+919876543210', 'name': 'Asha'})
        self.assertEqual(resp.status_code, 201)
        body = resp.json()
        self.assertFalse(body['isExisting'])
        self.assertEqual(body['user']['mobile'], '9876543210')
        self.assertTrue(Customer.objects.filter(mobile='9876543210').exists())

    def test_existing_customer_is_returned(self):
        customer = Customer.objects.create(mobile='9876543210', name='Asha')
        resp = self._signup({'mobile': '9876543210'})
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.json()['isExisting'])
        self.assertEqual(resp.json()['user']['id'], str(customer.pk))
        self.assertEqual(Customer.objects.count(), 1)

    def test_invalid_mobile(self):
        resp = self._signup({'mobile': '12345'})
        self.assertEqual(resp.status_code, 400)
        self.assertIn('mobile', resp.json()['errors'])

    def test_invalid_json(self):
        resp = self.client.post(reverse('accounts:signup'), data='{oops', content_type='application/json')
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()['message'], 'Invalid JSON body')


class CustomerTests(TestCase):
    def setUp(self):
        self.customer = Customer.objects.create(mobile='9876543210', name='Asha', email='asha@example.com')
        self.url = reverse('accounts:customer', args=[self.customer.pk])

    def test_get(self):
        resp = self.client.get(self.url)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()['user']['email'], 'asha@example.com')

    def test_update_only_sent_fields(self):
        resp = self.client.put(self.url, data=json.dumps({'name': 'Asha Rao'}), content_type='application/json')
        self.assertEqual(resp.status_code, 200)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.name, 'Asha Rao')
        self.assertEqual(self.customer.email, 'asha@example.com')

    def test_unknown_customer(self):
        resp = self.client.get(reverse('accounts:customer', args=['00000000-0000-0000-0000-000000000000']))
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json(), {'success': False, 'message': 'User not found'})


class AddressTests(TestCase):
    def setUp(self):
        self.customer = Customer.objects.create(mobile='9876543210')

    def payload(self, **overrides):
        body = {
            'userId': str(self.customer.pk),
            'addressLine1': '12 MG Road',
            'city': 'Jaipur',
            'state': 'Rajasthan',
            'postalCode': '302001',
        }
        body.update(overrides)
        return body

    def _create(self, payload):
        return self.client.post(reverse('addresses:create'), data=json.dumps(payload), content_type='application/json')

    def test_create(self):
        resp = self._create(self.payload(latitude=26.9124, longitude=75.7873))
        self.assertEqual(resp.status_code, 201)
        address = resp.json()['address']
        self.assertEqual(address['country'], 'India')
        self.assertEqual(address['userId'], str(self.customer.pk))
        self.assertAlmostEqual(address['latitude'], 26.9124)

    def test_missing_fields(self):
        resp = self._create({'userId': str(self.customer.pk), 'city': 'Jaipur'})
        self.assertEqual(resp.status_code, 400)
        self.assertIn('address_line_1', resp.json()['errors'])

    def test_unknown_customer(self):
        resp = self._create(self.payload(userId='00000000-0000-0000-0000-000000000000'))
        self.assertEqual(resp.status_code, 404)

    def test_new_default_replaces_old(self):
        self._create(self.payload(isDefault=True))
        self._create(self.payload(addressLine1='7 Civil Lines', isDefault=True))
        defaults = Address.objects.filter(customer=self.customer, is_default=True)
        self.assertEqual(defaults.count(), 1)
        self.assertEqual(defaults.get().address_line_1, '7 Civil Lines')

    def test_list_puts_default_first(self):
        Address.objects.create(customer=self.customer, address_line_1='A', city='X', state='Y', postal_code='1')
        Address.objects.create(
            customer=self.customer, address_line_1='B', city='X', state='Y', postal_code='1', is_default=True
        )
        resp = self.client.get(reverse('addresses:list', args=[self.customer.pk]))
        self.assertEqual(resp.json()['count'], 2)
        self.assertEqual(resp.json()['addresses'][0]['addressLine1'], 'B')

    def test_partial_update(self):
        address = Address.objects.create(
            customer=self.customer, address_line_1='12 MG Road', city='Jaipur', state='Rajasthan', postal_code='302001'
        )
        resp = self.client.put(
            reverse('addresses:update', args=[address.pk]),
            data=json.dumps({'city': 'Ajmer'}),
            content_type='application/json',
        )
        self.assertEqual(resp.status_code, 200)
        address.refresh_from_db()
        self.assertEqual(address.city, 'Ajmer')
        self.assertEqual(address.address_line_1, '12 MG Road')
