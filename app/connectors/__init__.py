"""App-level connectors.

Canonical locations:
  app.connectors.g2b.*: 나라장터 (data.go.kr BidPublicInfoService)
"""
