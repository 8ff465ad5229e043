"""
bas — Browser Automation Studio

ブラウザ操作を記録し、Playwright / Puppeteer / Selenium / Cypress の
自動化スクリプトと REST API 雛形に変換するツール。

主な構成:
  - recorder: 操作キャプチャエンジンとセレクタリゾルバ
  - trace: Interaction / InteractionTrace のスキーマと読み書き
  - params: パラメータ抽出とセキュリティ分類
  - synth: マルチターゲットのスクリプト合成
  - ai: AI によるスクリプト改善（任意の後処理）
  - api: OpenAPI / サーバー雛形の生成
"""

__version__ = "0.1.0"
