"""
core パッケージ — テンプレート描画と成果物の書き出し
"""
