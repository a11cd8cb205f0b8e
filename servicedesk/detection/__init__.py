"""
Failed-call detection, customer field extraction and message analysis.

Import the detector, extractor and analyzer from their modules directly;
``servicedesk.conversation`` depends on the extractor, so this package
does not re-export them.
"""
