"""
Scan Services

Organized by responsibility:

1. audit/ - One device audit, end to end
   - browser.py: Chrome process launch and teardown (BrowserSession)
   - lighthouse_engine.py: Lighthouse CLI against the session's debugging port
   - screenshot.py: Full-page screenshot over Selenium/CDP in the same browser
   - summary_extractor.py: Category scores, key metrics, recommendations
   - filmstrip.py: Filmstrip extraction and removal from the raw report
   - runner.py: One pass (launch -> audit -> screenshot -> teardown)
   - median.py: Three passes, median summary, representative pass

2. scan/ - Persistence and user-facing flows
   - repository.py: Scan rows
   - artifacts.py: Screenshot and filmstrip files
   - workflow.py: Mobile/desktop submissions, rescans, deletes, sharing
   - history.py: Paginated history and trends
"""
