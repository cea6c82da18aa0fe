"""
Backend API Service - FastAPI Application

Responsibilities:
- Expose harvested news records (paginated, by id, counts)
- Report and control the harvest scheduler (status, trigger, reset)
- Liveness probe with the current scheduler status

Endpoints:
- GET /api/news-data - List records, highest id first
- GET /api/news-data/{id} - Get record by id
- DELETE /api/news-data/{id} - Delete record by id
- GET /api/news-data/stats/count - Record counts
- GET /api/news-data/scraper/status - Scheduler status
- POST /api/news-data/scraper/trigger - Queue a batch
- POST /api/news-data/scraper/reset - Rewind the cursor
- GET /health - Health check
"""
