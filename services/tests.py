from datetime import date
from decimal import Decimal

from django.test import SimpleTestCase, TestCase
from django.urls import reverse

from .models import Service
from .slots import end_of, generate_slots, period_of


class ServiceApiTests(TestCase):
    def setUp(self):
        self.active = Service.objects.create(name='Bathroom Cleaning', price=Decimal('799.00'), duration_minutes=90)
        self.inactive = Service.objects.create(name='Pest Control', price=Decimal('999.00'), is_active=False)

    def test_list_only_active(self):
        resp = self.client.get(reverse('services:list'))
        self.assertEqual(resp.status_code, 200)
        names = [s['name'] for s in resp.json()['services']]
        self.assertEqual(names, ['Bathroom Cleaning'])

    def test_detail(self):
        resp = self.client.get(reverse('services:detail', args=[self.active.pk]))
        self.assertEqual(resp.json()['service']['price'], '799.00')
        self.assertEqual(resp.json()['service']['duration'], 90)

    def test_inactive_detail_is_not_found(self):
        resp = self.client.get(reverse('services:detail', args=[self.inactive.pk]))
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json()['message'], 'Service not found or inactive')


class SlotTests(SimpleTestCase):
    def test_full_day(self):
        slots = generate_slots('Malviya Nagar', date(2026, 1, 5))
        self.assertEqual(len(slots), 19)
        self.assertEqual(slots[0]['startTime'], '09:00')
        self.assertEqual(slots[-1]['endTime'], '18:30')

    def test_locality_exclusion(self):
        slots = generate_slots('Sodala', date(2026, 1, 5))
        self.assertEqual(len(slots), 18)
        self.assertNotIn('14:00', [s['startTime'] for s in slots])

    def test_repeatable(self):
        self.assertEqual(
            generate_slots('Vaishali Nagar', date(2026, 1, 5)),
            generate_slots('Vaishali Nagar', date(2026, 1, 5)),
        )

    def test_slot_fields(self):
        slot = generate_slots('Mansarovar', date(2026, 1, 5))[7]
        self.assertEqual(slot['startTime'], '12:30')
        self.assertEqual(slot['endTime'], '13:00')
        self.assertEqual(slot['period'], 'afternoon')
        self.assertEqual(slot['maxCapacity'], 5)
        self.assertIn(slot['currentBookings'], range(3))

    def test_helpers(self):
        self.assertEqual(end_of('09:30'), '10:00')
        self.assertEqual(end_of('17:00'), '17:30')
        self.assertEqual(period_of('11:30'), 'morning')
        self.assertEqual(period_of('15:00'), 'evening')

    def test_endpoint(self):
        resp = self.client.get(reverse('slots:list', args=['Sodala']), {'date': '2026-01-05'})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()['count'], 18)
        self.assertEqual(resp.json()['date'], '2026-01-05')

    def test_endpoint_bad_date(self):
        resp = self.client.get(reverse('slots:list', args=['Sodala']), {'date': '05-01-2026'})
        self.assertEqual(resp.status_code, 400)
        self.assertIn('date', resp.json()['errors'])
