"""Command-line tools for groundwork.

``python -m groundwork.cli`` manages and inspects the knowledge corpus
without starting the web server:

- ``ingest``  -- ingest local files as one atomic batch
- ``search``  -- print scored hits for a query
- ``context`` -- print the assembled context block for a query
- ``stats``   -- print stored chunk counts
"""
