"""
Harvester App - Incremental News Harvesting

Responsibilities:
- Load the ordered news id list from a JSON snapshot (IDS_FILE)
- Walk the list in bounded batches, resuming from a persisted cursor
- Fetch version and full payloads per id from the Playliner API, paced by API_DELAY_MS
- Skip ids whose record is already complete
- Persist records to SQLite and publish batch events to Redis

Output:
- SQLite tables: news_data, scheduler_checkpoint
- Redis event: channel=harvester.batches, payload={type, trigger, processed, ...}
"""
