"""服务层: git 远端访问与影子目录事务"""
