"""前台业务逻辑：FIFO 计价、重复排课、冲突检测、再注册预测与应用状态仓库。"""
