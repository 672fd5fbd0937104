import pytest
from django.urls import reverse
from rest_framework import status


@pytest.mark.django_db
class TestMeterReadingEndpoints:
    """Tests for /api/meter-readings/."""

    def test_requires_authentication(self, api_client):
        response = api_client.get(reverse('meter_readings:meter-reading-list'))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_create(self, reader_client, make_purchase):
        make_purchase(1, 1000)

        response = reader_client.post(
            reverse('meter_readings:meter-reading-list'),
            {'reading': 1040, 'reading_date': '2024-01-03'},
            format='json',
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['reading'] == 1040
        assert response.data['user']['email'] == 'reader@example.com'

    def test_create_forbidden_without_capability(self, member_client, make_purchase):
        make_purchase(1, 1000)

        response = member_client.post(
            reverse('meter_readings:meter-reading-list'),
            {'reading': 1040, 'reading_date': '2024-01-03'},
            format='json',
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_create_rejects_decrease(self, reader_client, make_purchase):
        make_purchase(1, 1000)

        response = reader_client.post(
            reverse('meter_readings:meter-reading-list'),
            {'reading': 900, 'reading_date': '2024-01-03'},
            format='json',
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'READING_BELOW_PREVIOUS'
        assert response.data['suggested_minimum'] == 1000

    def test_list_and_filter(self, member_client, make_reading):
        make_reading(3, 1030)
        newest = make_reading(7, 1080)
        url = reverse('meter_readings:meter-reading-list')

        response = member_client.get(url)
        filtered = member_client.get(url, {'date_from': '2024-01-05'})

        assert response.data['count'] == 2
        assert [row['id'] for row in filtered.data['results']] == [str(newest.id)]

    def test_patch_and_delete(self, reader_client, make_purchase, make_reading):
        make_purchase(1, 1000)
        meter_reading = make_reading(3, 1030)
        url = reverse('meter_readings:meter-reading-detail', args=[meter_reading.id])

        patched = reader_client.patch(url, {'reading': 1035}, format='json')
        deleted = reader_client.delete(url)

        assert patched.status_code == status.HTTP_200_OK
        assert patched.data['reading'] == 1035
        assert deleted.status_code == status.HTTP_204_NO_CONTENT

    def test_other_member_cannot_delete(self, member_client, make_reading):
        meter_reading = make_reading(3, 1030)

        response = member_client.delete(
            reverse('meter_readings:meter-reading-detail', args=[meter_reading.id])
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_latest(self, member_client, make_reading):
        url = reverse('meter_readings:meter-reading-latest')

        empty = member_client.get(url)
        make_reading(3, 1030)
        response = member_client.get(url)

        assert empty.status_code == status.HTTP_404_NOT_FOUND
        assert response.data['reading'] == 1030

    def test_validate(self, member_client, make_purchase):
        make_purchase(1, 1000, hour=12)

        response = member_client.post(
            reverse('meter_readings:meter-reading-validate'),
            {'reading': 990, 'reading_date': '2024-01-03'},
            format='json',
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data['valid'] is False
        assert response.data['code'] == 'READING_BELOW_PREVIOUS'
        assert response.data['suggestion']['minimum'] == 1000
        assert response.data['suggestion']['suggestion'] == 1024
