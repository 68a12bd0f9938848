"""Add access grants issued after a successful dataset purchase."""

schema = {
    'version': 2,
    'tables': [
        {
            'name': 'access_grants',
            'columns': [
                {'name': 'dataset_id', 'type': 'TEXT'},
                {'name': 'buyer_address', 'type': 'TEXT'},
                {'name': 'cid', 'type': 'TEXT', 'nullable': False},
                {'name': 'tx_hash', 'type': 'TEXT'},
                {'name': 'granted_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'primary_key': ['dataset_id', 'buyer_address'],
            'indexes': [
                {'name': 'idx_grants_buyer', 'columns': ['buyer_address']}
            ]
        }
    ],
    'migrations': [
        # Migration SQL from v1 to v2
        '''
        CREATE TABLE IF NOT EXISTS access_grants (
            dataset_id TEXT,
            buyer_address TEXT,
            cid TEXT NOT NULL,
            tx_hash TEXT,
            granted_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            PRIMARY KEY (dataset_id, buyer_address)
        );
        ''',
        '''
        CREATE INDEX IF NOT EXISTS idx_grants_buyer ON access_grants(buyer_address);
        '''
    ]
}
