"""
Rewind - season match crawl for one player

Temporal task queues:
1. rewind (RewindWorkflow)
   → start_scan: derive rootId → init progress → enqueue first list page per queue type

2. scan-list (ListPageWorkflow, 1 at a time, 1/s)
   → list 100 match ids → fan out fetch jobs → enqueue next page while pages are full

3. scan-fetch (FetchMatchWorkflow, 2 at a time, 5/s)
   → fetch match + timeline → upload to S3 → bump counters → check completion
"""
