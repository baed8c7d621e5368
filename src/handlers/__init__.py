"""
Serverless Handlers

サーバレス構成のエントリポイント:
- HTTP Handler (Netlify Functions / API Gateway → FastAPI)
"""
