"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
S3 Publish, a product of Garudex Labs

Command-line interface for s3publish.
"""
