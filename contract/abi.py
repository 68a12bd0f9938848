"""ABI fragments of the dataset registry contract used by this service."""

DATASET_REGISTRY_ABI = [
    {
        "type": "function",
        "name": "registerDataset",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "cid", "type": "string"},
            {"name": "name", "type": "string"},
            {"name": "description", "type": "string"},
            {"name": "priceEth", "type": "uint256"},
            {"name": "priceUsdc", "type": "uint256"},
            {"name": "category", "type": "string"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "buyDataset",
        "stateMutability": "payable",
        "inputs": [
            {"name": "datasetId", "type": "string"},
            {"name": "currency", "type": "uint8"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "hasPurchased",
        "stateMutability": "view",
        "inputs": [
            {"name": "buyer", "type": "address"},
            {"name": "datasetId", "type": "string"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
]
