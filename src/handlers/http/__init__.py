"""HTTP (API Gateway / Netlify Functions) handler"""
