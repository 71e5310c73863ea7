"""
s3-publish: incremental publishing of local files to an S3-compatible bucket.

A local manifest of content fingerprints lets each run upload only new and
changed files, and delete remote objects whose local file disappeared.

The primary entry point for programmatic use is the `Publisher` class.
"""

from typing import List

from s3_publish.publisher import Publisher

__all__: List[str] = ["Publisher"]
