"""
Test value fixtures for catalog tests.
"""
import pytest
from coursedb.models import Category, new_id


@pytest.fixture
def make_category():
    """Factory for categories with unique ids and slugs."""
    def factory(title='Data Science', **kwargs):
        values = {
            'id': new_id(),
            'title': title,
            'url': title.lower().replace(' ', '-'),
            'summary': f'All about {title}',
            'order': 7,
            'description': f'{title} courses and careers',
            'featured': True,
        }
        values.update(kwargs)
        return Category(**values)
    return factory
