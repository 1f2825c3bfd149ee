"""命令行交互层：REPL 与等待指示器。"""
