"""Schema v1 - Initial database schema.

This version includes tables for:
- Dataset listings and their prices
- Purchase (data access) requests
"""

schema = {
    'version': 1,
    'tables': [
        {
            'name': 'datasets',
            'columns': [
                {'name': 'id', 'type': 'TEXT', 'primary_key': True},
                {'name': 'name', 'type': 'TEXT', 'nullable': False},
                {'name': 'description', 'type': 'TEXT', 'nullable': False},
                {'name': 'category', 'type': 'TEXT', 'nullable': False},
                {'name': 'company', 'type': 'TEXT'},
                {'name': 'cid', 'type': 'TEXT', 'nullable': False},
                {'name': 'size_bytes', 'type': 'BIGINT', 'nullable': False},
                {'name': 'publisher_address', 'type': 'TEXT', 'nullable': False},
                {'name': 'downloads', 'type': 'BIGINT', 'nullable': False, 'default': '0'},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'indexes': [
                {'name': 'idx_datasets_cid', 'columns': ['cid'], 'unique': True},
                {'name': 'idx_datasets_category', 'columns': ['category']},
                {'name': 'idx_datasets_publisher', 'columns': ['publisher_address']}
            ]
        },
        {
            'name': 'dataset_prices',
            'columns': [
                {'name': 'dataset_id', 'type': 'TEXT'},
                {'name': 'unit', 'type': 'TEXT'},
                {'name': 'amount', 'type': 'NUMERIC', 'nullable': False},
                {'name': 'derived', 'type': 'BOOLEAN', 'nullable': False, 'default': 'false'},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'primary_key': ['dataset_id', 'unit'],
            'foreign_keys': [
                {'columns': ['dataset_id'], 'references': 'datasets(id)'}
            ]
        },
        {
            'name': 'data_requests',
            'columns': [
                {'name': 'id', 'type': 'TEXT', 'primary_key': True},
                {'name': 'dataset_id', 'type': 'TEXT', 'nullable': False},
                {'name': 'dataset_name', 'type': 'TEXT'},
                {'name': 'dataset_description', 'type': 'TEXT'},
                {'name': 'cid', 'type': 'TEXT'},
                {'name': 'requester_address', 'type': 'TEXT', 'nullable': False},
                {'name': 'uploader_address', 'type': 'TEXT', 'nullable': False},
                {'name': 'category', 'type': 'TEXT'},
                {'name': 'size', 'type': 'TEXT'},
                {'name': 'price_unit', 'type': 'TEXT', 'nullable': False, 'default': "'OYD'"},
                {'name': 'price_amount', 'type': 'NUMERIC', 'nullable': False},
                {'name': 'status', 'type': 'TEXT', 'nullable': False, 'default': "'pending'"},
                {'name': 'requested_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMPTZ'}
            ],
            'indexes': [
                {'name': 'idx_requests_uploader', 'columns': ['uploader_address', 'requested_at']},
                {'name': 'idx_requests_requester', 'columns': ['requester_address']},
                {'name': 'idx_requests_status', 'columns': ['status']}
            ]
        }
    ]
}
